"""
PhenoCount: phenotype-class count analysis for high-content siRNA screens.

This package provides tools for:
- Loading plate layouts and per-well phenotype-class count matrices
- Normalising instrument well identifiers to plate-layout keys
- Reshaping, joining and logit-transforming class proportions
- Exploring wells with PCA and classifying treated versus control wells with kNN
"""

__version__ = "0.1.0"

from phenocount.data.annotation import AnnotationRecord, Group, load_annotation
from phenocount.data.counts import load_count_matrix
from phenocount.data.wells import normalise_well_id, normalise_well_ids
from phenocount.diagnostics import Diagnostics
from phenocount.exceptions import (
    AnnotationError,
    DegenerateTransformError,
    EmptyWellError,
    IdentifierMismatchError,
    MissingFeatureError,
    MissingInputError,
    PhenoCountError,
    PivotAmbiguityError,
)
from phenocount.pipeline import PipelineResult, ScreenPipeline, run_pipeline
from phenocount.utils.config import ScreenConfig, load_config
from phenocount.utils.logging import logger, setup_logging

__all__ = [
    # Data
    "AnnotationRecord",
    "Group",
    "load_annotation",
    "load_count_matrix",
    "normalise_well_id",
    "normalise_well_ids",
    # Pipeline
    "ScreenPipeline",
    "PipelineResult",
    "run_pipeline",
    "Diagnostics",
    # Errors
    "PhenoCountError",
    "MissingInputError",
    "AnnotationError",
    "IdentifierMismatchError",
    "EmptyWellError",
    "DegenerateTransformError",
    "PivotAmbiguityError",
    "MissingFeatureError",
    # Config
    "ScreenConfig",
    "load_config",
    # Logging
    "logger",
    "setup_logging",
    # Version
    "__version__",
]
