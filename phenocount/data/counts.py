"""
Phenotype-class count matrix loading.

The count matrix has one row per phenotype class and one column per raw well
identifier; each cell holds the number of cells assigned to that class in
that well, accumulated over all time points.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd

from phenocount.exceptions import PivotAmbiguityError
from phenocount.utils.io import read_table
from phenocount.utils.logging import logger


def validate_count_matrix(matrix: pd.DataFrame) -> pd.DataFrame:
    """
    Check a count matrix and return a copy with integer counts.

    Args:
        matrix: Classes as index, raw well identifiers as columns

    Returns:
        Validated copy with ``int64`` values and string labels

    Raises:
        ValueError: If the matrix is empty, non-numeric, has missing,
            negative or non-integer counts
        PivotAmbiguityError: If a class or well label occurs twice
    """
    if matrix.shape[0] == 0 or matrix.shape[1] == 0:
        raise ValueError(f"Count matrix is empty (shape {matrix.shape})")

    matrix = matrix.copy()
    matrix.index = matrix.index.map(str)
    matrix.columns = matrix.columns.map(str)

    duplicate_classes = matrix.index[matrix.index.duplicated()].unique().tolist()
    duplicate_wells = matrix.columns[matrix.columns.duplicated()].unique().tolist()
    if duplicate_classes or duplicate_wells:
        pairs = [("*", cls) for cls in duplicate_classes] + [(well, "*") for well in duplicate_wells]
        raise PivotAmbiguityError(pairs)

    try:
        values = matrix.apply(pd.to_numeric)
    except (ValueError, TypeError) as exc:
        raise ValueError(f"Count matrix contains non-numeric values: {exc}") from exc

    if values.isna().any().any():
        n_missing = int(values.isna().sum().sum())
        raise ValueError(f"Count matrix contains {n_missing} missing value(s)")

    array = values.to_numpy(dtype=float)
    if (array < 0).any():
        raise ValueError("Count matrix contains negative counts")
    if not np.allclose(array, np.round(array)):
        raise ValueError("Count matrix contains non-integer counts")

    return values.round().astype(np.int64)


def load_count_matrix(path: Union[str, Path]) -> pd.DataFrame:
    """
    Load a count matrix from CSV/TSV (class labels in the first column) or a pickle.

    Args:
        path: Input file

    Returns:
        Validated count matrix

    Raises:
        MissingInputError: If the file is absent or unreadable
        ValueError: If the contents are not a valid count matrix
    """
    logger.info(f"Loading count matrix from {path}")
    suffix = Path(path).suffix.lower()
    index_col = None if suffix in (".pkl", ".pickle") else 0

    matrix = validate_count_matrix(read_table(path, index_col=index_col))

    logger.info(
        f"Loaded count matrix: {matrix.shape[0]} phenotype classes x {matrix.shape[1]} wells, "
        f"{int(matrix.to_numpy().sum())} cells"
    )
    return matrix


def count_matrix_from_cells(
    cells: pd.DataFrame,
    class_column: str = "class",
    well_column: str = "well",
    time_column: Optional[str] = None,
) -> pd.DataFrame:
    """
    Build a count matrix from per-cell classifications.

    Counts are accumulated over all time points; ``time_column`` is only used
    to log how many time points were merged.

    Args:
        cells: One row per classified cell
        class_column: Column with the phenotype class of each cell
        well_column: Column with the raw well identifier of each cell
        time_column: Optional column with the acquisition time point

    Returns:
        Count matrix (classes x wells)
    """
    for col in (class_column, well_column):
        if col not in cells.columns:
            raise ValueError(f"Cell table is missing column '{col}'")

    if time_column is not None and time_column in cells.columns:
        logger.debug(f"Accumulating counts over {cells[time_column].nunique()} time points")

    matrix = pd.crosstab(cells[class_column], cells[well_column])
    matrix.index.name = None
    matrix.columns.name = None

    return validate_count_matrix(matrix)
