"""
Table transformations for PhenoCount.

This package provides the stages between loading and modeling:
- Reshaping count matrices to long tables and back
- Joining the plate layout by normalised well identifier
- Per-well percentages and logit z-scores
- Pivoting to a per-well feature matrix
"""

from phenocount.processing.reshape import counts_to_long, long_to_counts
from phenocount.processing.join import JoinResult, join_annotation
from phenocount.processing.normalisation import (
    TransformResult,
    compute_percentages,
    compute_z_scores,
    logit,
    normalise_counts,
    well_totals,
)
from phenocount.processing.features import (
    FeatureMatrixResult,
    build_feature_matrix,
    feature_matrix_to_long,
    find_duplicate_pairs,
)

__all__ = [
    # Reshape
    "counts_to_long",
    "long_to_counts",
    # Join
    "JoinResult",
    "join_annotation",
    # Normalisation
    "TransformResult",
    "logit",
    "well_totals",
    "compute_percentages",
    "compute_z_scores",
    "normalise_counts",
    # Features
    "FeatureMatrixResult",
    "build_feature_matrix",
    "feature_matrix_to_long",
    "find_duplicate_pairs",
]
