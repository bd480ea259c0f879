"""
Per-well normalisation and logit transform of phenotype-class counts.

For each well the class counts are divided by the well total, and each
proportion is mapped to the real line with ``ln(p / (1 - p))``. Proportions
of exactly 0 or 1 have no finite logit; they are always flagged, and the
degenerate policy decides whether they are clipped, kept infinite, or
rejected.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Tuple, Union

import numpy as np
import pandas as pd
from scipy import special

from phenocount.data import columns as C
from phenocount.diagnostics import Diagnostics
from phenocount.exceptions import DegenerateTransformError, EmptyWellError
from phenocount.utils.logging import logger


EmptyWellPolicy = Literal["drop", "raise"]
DegeneratePolicy = Literal["clip", "flag", "raise"]


# =============================================================================
# Result
# =============================================================================

@dataclass
class TransformResult:
    """Processed table plus wells and (well, class) pairs that needed special handling."""

    table: pd.DataFrame
    empty_wells: List[str] = field(default_factory=list)
    degenerate_rows: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def diagnostics(self) -> Diagnostics:
        return Diagnostics(
            empty_wells=list(self.empty_wells),
            degenerate_rows=list(self.degenerate_rows),
        )


# =============================================================================
# Transform Functions
# =============================================================================

def logit(p: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Log-odds of a proportion.

    Returns -inf for 0 and +inf for 1 without emitting numpy warnings.

    Example:
        >>> round(logit(0.1), 3)
        -2.197
    """
    with np.errstate(divide="ignore"):
        result = special.logit(np.asarray(p, dtype=float))
    if np.ndim(result) == 0:
        return float(result)
    return result


def well_totals(table: pd.DataFrame) -> pd.DataFrame:
    """
    Total cell count of every well.

    Args:
        table: Long table with ``well`` and ``count`` columns

    Returns:
        DataFrame with columns ``well`` and ``total``
    """
    totals = (
        table.groupby(C.WELL, sort=False)[C.COUNT]
        .sum()
        .rename(C.TOTAL)
        .reset_index()
    )
    return totals


def compute_percentages(
    table: pd.DataFrame,
    on_empty_well: EmptyWellPolicy = "drop",
) -> Tuple[pd.DataFrame, List[str]]:
    """
    Add ``total`` and ``percentage`` (fraction of the well total) columns.

    Args:
        table: Long table with ``well`` and ``count`` columns
        on_empty_well: What to do with wells whose total is 0

    Returns:
        Tuple of (new table, wells dropped for having no cells)

    Raises:
        EmptyWellError: If a well is empty and ``on_empty_well == "raise"``
    """
    if on_empty_well not in ("drop", "raise"):
        raise ValueError(f"Unknown empty-well policy: {on_empty_well}")

    totals = well_totals(table)
    empty_wells = totals.loc[totals[C.TOTAL] == 0, C.WELL].tolist()

    if empty_wells:
        if on_empty_well == "raise":
            raise EmptyWellError(empty_wells)
        logger.warning(f"Dropping {len(empty_wells)} well(s) with zero cells: {empty_wells[:5]}")

    result = table.merge(totals, on=C.WELL, how="left")
    result = result[~result[C.WELL].isin(empty_wells)].reset_index(drop=True)
    result[C.PERCENTAGE] = result[C.COUNT] / result[C.TOTAL]

    return result, empty_wells


def compute_z_scores(
    table: pd.DataFrame,
    policy: DegeneratePolicy = "clip",
    epsilon: float = 1e-4,
) -> Tuple[pd.DataFrame, List[Tuple[str, str]]]:
    """
    Add ``z_score`` (logit of the percentage) and ``degenerate`` columns.

    Args:
        table: Table with ``well``, ``phenotype_class`` and ``percentage`` columns
        policy: ``"clip"`` clamps percentages to ``[epsilon, 1 - epsilon]``,
            ``"flag"`` keeps infinite z-scores, ``"raise"`` rejects them
        epsilon: Clipping margin for the ``"clip"`` policy

    Returns:
        Tuple of (new table, degenerate (well, class) pairs)

    Raises:
        DegenerateTransformError: If any percentage is 0 or 1 and ``policy == "raise"``
    """
    if policy not in ("clip", "flag", "raise"):
        raise ValueError(f"Unknown degenerate-transform policy: {policy}")
    if not 0 < epsilon < 0.5:
        raise ValueError(f"clip epsilon must be in (0, 0.5), got {epsilon}")

    result = table.copy()
    percentage = result[C.PERCENTAGE].to_numpy(dtype=float)
    degenerate = (percentage <= 0.0) | (percentage >= 1.0)

    pairs = list(
        zip(
            result.loc[degenerate, C.WELL].tolist(),
            result.loc[degenerate, C.PHENOTYPE_CLASS].tolist(),
        )
    )

    if pairs:
        if policy == "raise":
            raise DegenerateTransformError(pairs)
        action = "clipped" if policy == "clip" else "left infinite"
        logger.warning(
            f"{len(pairs)} (well, class) pair(s) have percentage 0 or 1; z-scores {action}"
        )

    if policy == "clip":
        percentage = np.clip(percentage, epsilon, 1.0 - epsilon)

    result[C.Z_SCORE] = logit(percentage)
    result[C.DEGENERATE] = degenerate

    return result, pairs


def normalise_counts(
    joined: pd.DataFrame,
    on_empty_well: EmptyWellPolicy = "drop",
    degenerate_policy: DegeneratePolicy = "clip",
    clip_epsilon: float = 1e-4,
) -> TransformResult:
    """
    Compute well totals, class percentages and logit z-scores.

    Args:
        joined: Output of ``join_annotation`` (or any long count table)
        on_empty_well: Policy for wells with no cells
        degenerate_policy: Policy for percentages of 0 or 1
        clip_epsilon: Clipping margin for the ``"clip"`` policy

    Returns:
        TransformResult whose table adds ``total``, ``percentage``,
        ``z_score`` and ``degenerate`` columns

    Example:
        >>> result = normalise_counts(joined)
        >>> result.table.groupby("well")["percentage"].sum()  # 1.0 per well
    """
    with_pct, empty_wells = compute_percentages(joined, on_empty_well=on_empty_well)
    processed, degenerate_rows = compute_z_scores(
        with_pct, policy=degenerate_policy, epsilon=clip_epsilon,
    )

    logger.info(
        f"Normalised {processed[C.WELL].nunique()} wells "
        f"({len(degenerate_rows)} degenerate pairs, {len(empty_wells)} empty wells)"
    )

    return TransformResult(
        table=processed,
        empty_wells=empty_wells,
        degenerate_rows=degenerate_rows,
    )
