"""
Feature matrix construction (long -> wide) and its inverse.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Tuple

import numpy as np
import pandas as pd

from phenocount.data import columns as C
from phenocount.diagnostics import Diagnostics
from phenocount.exceptions import MissingFeatureError, PivotAmbiguityError
from phenocount.utils.logging import logger


MissingPolicy = Literal["raise", "nan"]


@dataclass
class FeatureMatrixResult:
    """
    Wide feature matrix: one row per well, one column per phenotype class.

    Label columns (``group``, ``gene_symbol``) follow the feature columns.
    """

    matrix: pd.DataFrame
    feature_columns: List[str]
    missing_features: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def diagnostics(self) -> Diagnostics:
        return Diagnostics(missing_features=list(self.missing_features))

    @property
    def X(self) -> np.ndarray:
        """Numeric features as an array of shape (n_wells, n_classes)."""
        return self.matrix[self.feature_columns].to_numpy(dtype=float)

    @property
    def labels(self) -> pd.Series:
        """Experimental group of each well."""
        return self.matrix[C.GROUP]

    @property
    def wells(self) -> List[str]:
        return self.matrix.index.tolist()

    def __len__(self) -> int:
        return len(self.matrix)

    def __repr__(self) -> str:
        return (
            f"FeatureMatrixResult(n_wells={len(self.matrix)}, "
            f"n_features={len(self.feature_columns)})"
        )


def find_duplicate_pairs(table: pd.DataFrame) -> List[Tuple[str, str]]:
    """(well, class) pairs that occur more than once."""
    dupes = table[table.duplicated(subset=[C.WELL, C.PHENOTYPE_CLASS], keep=False)]
    return list(dict.fromkeys(zip(dupes[C.WELL], dupes[C.PHENOTYPE_CLASS])))


def build_feature_matrix(
    table: pd.DataFrame,
    value_column: str = C.Z_SCORE,
    missing: MissingPolicy = "raise",
) -> FeatureMatrixResult:
    """
    Pivot a processed long table into a per-well feature matrix.

    Args:
        table: Long table with ``well``, ``phenotype_class``, ``value_column``
            and, optionally, ``group``/``gene_symbol`` label columns
        value_column: Column supplying the feature values
        missing: ``"raise"`` rejects wells lacking a class, ``"nan"`` fills
            them with NaN and reports them

    Returns:
        FeatureMatrixResult

    Raises:
        PivotAmbiguityError: If a (well, class) pair occurs more than once
        MissingFeatureError: If classes are missing and ``missing == "raise"``
    """
    if missing not in ("raise", "nan"):
        raise ValueError(f"Unknown missing-feature policy: {missing}")

    duplicates = find_duplicate_pairs(table)
    if duplicates:
        raise PivotAmbiguityError(duplicates)

    wide = table.pivot(index=C.WELL, columns=C.PHENOTYPE_CLASS, values=value_column)
    wide.columns.name = None
    feature_columns = [str(col) for col in wide.columns]
    wide.columns = feature_columns

    present = set(zip(table[C.WELL], table[C.PHENOTYPE_CLASS].map(str)))
    missing_pairs = [
        (well, cls)
        for well in wide.index
        for cls in feature_columns
        if (well, cls) not in present
    ]

    if missing_pairs:
        if missing == "raise":
            raise MissingFeatureError(missing_pairs)
        logger.warning(f"Filled {len(missing_pairs)} missing (well, class) value(s) with NaN")

    label_columns = [col for col in C.LABEL_COLUMNS if col in table.columns]
    if label_columns:
        labels = table.drop_duplicates(subset=C.WELL).set_index(C.WELL)[label_columns]
        wide = wide.join(labels)

    logger.info(f"Built feature matrix: {len(wide)} wells x {len(feature_columns)} classes")

    return FeatureMatrixResult(
        matrix=wide,
        feature_columns=feature_columns,
        missing_features=missing_pairs,
    )


def feature_matrix_to_long(
    result: FeatureMatrixResult,
    value_column: str = C.VALUE,
    drop_missing: bool = True,
) -> pd.DataFrame:
    """
    Melt a feature matrix back into (well, phenotype_class, value) rows.

    Args:
        result: Feature matrix to melt
        value_column: Name of the value column in the output
        drop_missing: Skip cells that were filled because the class was missing

    Returns:
        Long DataFrame
    """
    long_df = (
        result.matrix[result.feature_columns]
        .rename_axis(index=C.WELL)
        .reset_index()
        .melt(id_vars=C.WELL, var_name=C.PHENOTYPE_CLASS, value_name=value_column)
    )
    if drop_missing and result.missing_features:
        missing = set(result.missing_features)
        keep = [
            (well, cls) not in missing
            for well, cls in zip(long_df[C.WELL], long_df[C.PHENOTYPE_CLASS])
        ]
        long_df = long_df[keep].reset_index(drop=True)
    return long_df
