"""
Data structures and loaders for PhenoCount.
"""

from phenocount.data.annotation import (
    CONTROL_GROUPS,
    AnnotationRecord,
    Group,
    annotation_records,
    load_annotation,
    validate_annotation,
)
from phenocount.data.counts import (
    count_matrix_from_cells,
    load_count_matrix,
    validate_count_matrix,
)
from phenocount.data.wells import (
    NormalisationResult,
    WellPosition,
    is_normalised_well_id,
    normalise_well_id,
    normalise_well_ids,
    parse_well_id,
)

__all__ = [
    # Wells
    "WellPosition",
    "NormalisationResult",
    "parse_well_id",
    "is_normalised_well_id",
    "normalise_well_id",
    "normalise_well_ids",
    # Annotation
    "Group",
    "CONTROL_GROUPS",
    "AnnotationRecord",
    "validate_annotation",
    "load_annotation",
    "annotation_records",
    # Counts
    "validate_count_matrix",
    "load_count_matrix",
    "count_matrix_from_cells",
]
