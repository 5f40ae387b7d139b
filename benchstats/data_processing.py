"""
Turns tidy observations into per-group samples.
"""

# Algorithm summary: load observations into a DataFrame, apply the missing
# value policy, collapse technical replicates into one value per biological
# replicate when requested, then apply the variance-stabilising transform.
# Every step returns new objects; inputs are never modified.

import logging
import math

import numpy as np
import pandas as pd

from .schema import ComputeOptions, Observation, Sample

logger = logging.getLogger(__name__)

_LOG_FUNCS = {"log2": np.log2, "log10": np.log10}


def observations_to_frame(observations):
    """Load observations into a DataFrame with one row per input record.

    Rows without a biological replicate id get a synthetic ``row-<index>`` id
    so each counts as its own biological unit. ``bio_given`` keeps track of
    which ids came from the caller.

    Args:
        observations: Iterable of :class:`benchstats.schema.Observation`.

    Returns:
        pandas.DataFrame: Columns ``row``, ``group``, ``bio``, ``bio_given``,
        ``tech``, ``value``, ``dose`` and ``event``.
    """
    records = []
    for idx, obs in enumerate(observations):
        value = float(obs.value) if obs.value is not None else math.nan
        records.append(
            {
                "row": idx,
                "group": str(obs.group) if obs.group not in (None, "") else "Ungrouped",
                "bio": obs.bio_replicate_id
                if obs.bio_replicate_id not in (None, "")
                else f"row-{idx}",
                "bio_given": obs.bio_replicate_id not in (None, ""),
                "tech": obs.technical_replicate_id,
                "value": value,
                "dose": float(obs.dose) if obs.dose is not None else math.nan,
                "event": obs.event,
            }
        )
    columns = ["row", "group", "bio", "bio_given", "tech", "value", "dose", "event"]
    return pd.DataFrame.from_records(records, columns=columns)


def apply_missing_policy(frame, missing_handling="ignore"):
    """Drop non-finite values according to the missing-value policy.

    ``ignore`` drops only the offending rows. ``drop-replicate`` drops every
    row of any biological replicate (within its group) that owns a
    non-finite value.

    Returns:
        tuple[pandas.DataFrame, list[str]]: Filtered copy and warnings.
    """
    if missing_handling not in ("ignore", "drop-replicate"):
        raise ValueError("missing_handling must be 'ignore' or 'drop-replicate'")

    warnings = []
    finite = np.isfinite(frame["value"].to_numpy(dtype=float))
    if finite.all():
        return frame.copy(), warnings

    if missing_handling == "ignore":
        n_missing = int((~finite).sum())
        logger.debug("Ignoring %d missing values", n_missing)
        return frame.loc[finite].copy(), warnings

    bad = frame.loc[~finite, ["group", "bio"]].drop_duplicates()
    keys = set(zip(bad["group"], bad["bio"]))
    keep = [
        (g, b) not in keys for g, b in zip(frame["group"], frame["bio"])
    ]
    for group, sub in bad.groupby("group", sort=False):
        msg = (
            f"Dropped {len(sub)} biological replicate(s) with missing values "
            f"from group '{group}'."
        )
        warnings.append(msg)
        logger.warning(msg)
    return frame.loc[keep].copy(), warnings


def collapse_replicates(group_frame, options):
    """Reduce one group's rows to sample values.

    With ``replicate_type="technical"`` and ``technical_handling="average"``
    each biological replicate contributes the arithmetic mean of its rows;
    otherwise every row is kept as its own value.

    Returns:
        tuple[numpy.ndarray, list]: Values and the ``(bio_id, tech_id, given)``
        unit behind each value; ``tech_id`` is ``None`` for averaged values.
    """
    if group_frame.empty:
        return np.array([], dtype=float), []

    if options.replicate_type == "technical" and options.technical_handling == "average":
        averaged = group_frame.groupby("bio", sort=False).agg(
            value=("value", "mean"), bio_given=("bio_given", "first")
        )
        values = averaged["value"].to_numpy(dtype=float)
        units = [
            (bio, None, given) for bio, given in zip(averaged.index, averaged["bio_given"])
        ]
        return values, units

    values = group_frame["value"].to_numpy(dtype=float)
    tech = [None if pd.isna(t) else str(t) for t in group_frame["tech"]]
    return values, list(zip(group_frame["bio"], tech, group_frame["bio_given"]))


def apply_transform(values, transform="none", allow_non_positive=False, labels=None):
    """Apply a transform, excluding values outside its domain.

    Domains: ``log2``/``log10`` need ``x > 0``; ``sqrt`` needs ``x >= 0``;
    ``arcsine`` (``arcsin(sqrt(x))``) needs ``0 <= x <= 1``. Out-of-domain
    values are excluded, or kept untransformed when ``allow_non_positive``
    is set; either way a warning names the count. No value is coerced.

    Args:
        values: Input values.
        transform: One of ``none``, ``log2``, ``log10``, ``sqrt``, ``arcsine``.
        allow_non_positive: Keep out-of-domain values on the raw scale.
        labels: Optional per-value labels filtered alongside the values.

    Returns:
        dict: ``values`` (numpy.ndarray), ``labels`` (list), ``excluded``
        (numpy.ndarray of the out-of-domain inputs) and ``warning``
        (str or None).

    Raises:
        ValueError: If ``transform`` is not recognised.
    """
    arr = np.asarray(values, dtype=float).reshape(-1)
    lab = list(labels) if labels is not None else [None] * arr.size

    if transform == "none":
        return {"values": arr.copy(), "labels": lab, "excluded": arr[:0], "warning": None}

    if transform in _LOG_FUNCS:
        in_domain = arr > 0
        func = _LOG_FUNCS[transform]
        domain_text = "non-positive"
    elif transform == "sqrt":
        in_domain = arr >= 0
        func = np.sqrt
        domain_text = "negative"
    elif transform == "arcsine":
        in_domain = (arr >= 0) & (arr <= 1)
        func = lambda x: np.arcsin(np.sqrt(x))  # noqa: E731
        domain_text = "out-of-range (outside [0, 1])"
    else:
        raise ValueError(f"Unknown transform: {transform!r}")

    out = arr.copy()
    out[in_domain] = func(arr[in_domain])
    excluded = arr[~in_domain]

    if allow_non_positive:
        kept_values, kept_labels = out, lab
    else:
        kept_values = out[in_domain]
        kept_labels = [lbl for lbl, ok in zip(lab, in_domain) if ok]

    warning = None
    if excluded.size > 0:
        action = (
            "kept untransformed under" if allow_non_positive else "excluded from"
        )
        warning = (
            f"{excluded.size} {domain_text} value(s) {action} the {transform} transform."
        )
    return {
        "values": kept_values,
        "labels": kept_labels,
        "excluded": excluded,
        "warning": warning,
    }


def build_samples(observations, options=None):
    """Build one :class:`Sample` per group in first-appearance order.

    Groups left empty after cleaning and transforming are omitted.

    Returns:
        tuple[dict[str, Sample], list[str]]: Samples keyed by group label and
        accumulated warnings.
    """
    options = options or ComputeOptions()
    frame = observations_to_frame(observations)
    frame, warnings = apply_missing_policy(frame, options.missing_handling)

    samples = {}
    for group, group_frame in frame.groupby("group", sort=False):
        values, units = collapse_replicates(group_frame, options)
        result = apply_transform(
            values, options.transform, options.allow_non_positive_transform, units
        )
        if result["warning"]:
            msg = f"Group '{group}': {result['warning']}"
            warnings.append(msg)
            logger.warning(msg)
        if len(result["values"]) == 0:
            logger.info("Group '%s' has no usable values and was skipped", group)
            continue
        kept = result["labels"]
        kept_bio = {bio for bio, _, _ in kept}
        n_tech = group_frame.loc[group_frame["bio"].isin(kept_bio), "tech"].notna().sum()
        samples[str(group)] = Sample(
            name=str(group),
            values=tuple(float(v) for v in result["values"]),
            labels=tuple(str(bio) if given else None for bio, _, given in kept),
            tech_labels=tuple(tech for _, tech, _ in kept),
            n_bio=len(kept_bio),
            n_tech=int(n_tech),
        )
    return samples, warnings


def _pair_keys(sample):
    tech = sample.tech_labels or (None,) * len(sample)
    return list(zip(sample.labels, tech))


def align_paired(first, second):
    """Align two samples pair-by-pair for a paired design.

    Values are matched on ``(biological id, technical id)`` when both samples
    carry biological ids on every value; otherwise they are matched by
    position, but only when neither sample carries ids and the lengths agree.
    Keys that repeat within a sample cannot be matched and refuse the
    alignment.

    Returns:
        tuple[numpy.ndarray, numpy.ndarray, list[str]]: Aligned arrays and
        warnings (empty arrays when no alignment is possible).
    """
    warnings = []
    empty = np.array([], dtype=float)
    a_ids = [lbl for lbl in first.labels if lbl is not None]
    b_ids = [lbl for lbl in second.labels if lbl is not None]
    if a_ids and b_ids and len(a_ids) == len(first) and len(b_ids) == len(second):
        a_keys, b_keys = _pair_keys(first), _pair_keys(second)
        for sample, keys in ((first, a_keys), (second, b_keys)):
            if len(set(keys)) != len(keys):
                warnings.append(
                    f"Cannot pair '{first.name}' with '{second.name}': replicate ids "
                    f"repeat within '{sample.name}' and do not identify single values."
                )
                return empty, empty.copy(), warnings
        b_lookup = dict(zip(b_keys, second.values))
        shared = [key for key in a_keys if key in b_lookup]
        a = np.array([v for key, v in zip(a_keys, first.values) if key in b_lookup])
        b = np.array([b_lookup[key] for key in shared])
        unmatched = len(first) + len(second) - 2 * len(shared)
        if unmatched:
            warnings.append(
                f"{unmatched} value(s) without a partner replicate were left out "
                "of the paired comparison."
            )
        return a.astype(float), b.astype(float), warnings

    if not a_ids and not b_ids and len(first) == len(second):
        return (
            np.asarray(first.values, dtype=float),
            np.asarray(second.values, dtype=float),
            warnings,
        )

    reason = (
        "replicate ids are missing on some values"
        if a_ids or b_ids
        else "replicate ids are missing and lengths differ"
    )
    warnings.append(
        f"Cannot pair '{first.name}' (n={len(first)}) with '{second.name}' "
        f"(n={len(second)}): {reason}."
    )
    return empty, empty.copy(), warnings


_CSV_COLUMNS = {
    "group": "group",
    "bio_replicate": "bio_replicate_id",
    "technical_replicate": "technical_replicate_id",
    "value": "value",
    "dose": "dose",
    "event": "event",
}


def _optional(value):
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def load_observations(filepath):
    """
    Load tidy observations from a CSV file.

    Required columns are ``group`` and ``value``; ``bio_replicate``,
    ``technical_replicate``, ``dose`` and ``event`` are optional.

    Args:
        filepath (str): Path to the CSV file.

    Returns:
        list[Observation]: One record per row, in file order.

    Raises:
        ValueError: If a required column is missing.
    """
    frame = pd.read_csv(filepath, dtype={"bio_replicate": str, "technical_replicate": str})
    missing = [c for c in ("group", "value") if c not in frame.columns]
    if missing:
        raise ValueError(f"Missing required column(s): {', '.join(missing)}")

    observations = []
    for row in frame.to_dict("records"):
        kwargs = {
            field: _optional(row.get(column))
            for column, field in _CSV_COLUMNS.items()
            if column in frame.columns
        }
        kwargs["group"] = str(kwargs.get("group") or "")
        value = kwargs.get("value")
        kwargs["value"] = float(value) if value is not None else math.nan
        if kwargs.get("event") is not None:
            kwargs["event"] = bool(int(kwargs["event"]))
        observations.append(Observation(**kwargs))
    logger.info("Loaded %d observations from %s", len(observations), filepath)
    return observations
