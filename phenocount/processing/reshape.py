"""
Wide/long reshaping of count matrices.
"""

from __future__ import annotations

from typing import Optional

import pandas as pd

from phenocount.data import columns as C
from phenocount.data.counts import validate_count_matrix
from phenocount.data.wells import NormalisationResult, normalise_well_ids
from phenocount.exceptions import IdentifierMismatchError
from phenocount.utils.logging import logger


def counts_to_long(
    matrix: pd.DataFrame,
    normalisation: Optional[NormalisationResult] = None,
    strict: bool = False,
) -> pd.DataFrame:
    """
    Melt a count matrix into one row per (phenotype class, well).

    The output has exactly ``n_classes * n_wells`` rows; every input cell
    appears once.

    Args:
        matrix: Count matrix (classes x raw well identifiers)
        normalisation: Precomputed identifier mapping; computed here if None
        strict: Raise on identifiers that match no known format

    Returns:
        DataFrame with columns ``phenotype_class``, ``raw_well``, ``well``, ``count``

    Raises:
        IdentifierMismatchError: If ``normalisation`` lacks a column of ``matrix``
    """
    matrix = validate_count_matrix(matrix)

    if normalisation is None:
        normalisation = normalise_well_ids(matrix.columns, strict=strict)

    unmapped = [raw for raw in matrix.columns if raw not in normalisation.mapping]
    if unmapped:
        raise IdentifierMismatchError(
            unmapped,
            message=f"Well normalisation has no entry for {len(unmapped)} column(s): {unmapped[:5]}",
        )

    long_df = (
        matrix.rename_axis(index=C.PHENOTYPE_CLASS, columns=C.RAW_WELL)
        .reset_index()
        .melt(id_vars=C.PHENOTYPE_CLASS, var_name=C.RAW_WELL, value_name=C.COUNT)
    )
    long_df.insert(2, C.WELL, long_df[C.RAW_WELL].map(normalisation.mapping))

    expected = matrix.shape[0] * matrix.shape[1]
    if len(long_df) != expected:
        raise ValueError(f"Reshape produced {len(long_df)} rows, expected {expected}")

    logger.info(
        f"Reshaped {matrix.shape[0]} x {matrix.shape[1]} count matrix to {len(long_df)} rows"
    )
    return long_df


def long_to_counts(long_df: pd.DataFrame, well_column: str = C.RAW_WELL) -> pd.DataFrame:
    """
    Pivot a long count table back into a count matrix.

    Args:
        long_df: Table with ``phenotype_class``, ``count`` and ``well_column``
        well_column: Column to use for the matrix columns

    Returns:
        Count matrix (classes x wells)
    """
    matrix = long_df.pivot(index=C.PHENOTYPE_CLASS, columns=well_column, values=C.COUNT)
    matrix.index.name = None
    matrix.columns.name = None
    return matrix
