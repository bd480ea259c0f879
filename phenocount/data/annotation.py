"""
Plate layout (annotation) loading.

The plate layout maps every well to its experimental group and, for targeted
wells, the gene symbol of the siRNA target.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from phenocount.data import columns as C
from phenocount.data.wells import normalise_well_id
from phenocount.exceptions import AnnotationError
from phenocount.utils.io import read_table
from phenocount.utils.logging import logger


# =============================================================================
# Experimental Groups
# =============================================================================

class Group(str, Enum):
    """Experimental group of a well."""

    NEGATIVE = "negative"
    SCRAMBLED = "scrambled"
    EMPTY = "empty"
    TARGET = "target"

    @classmethod
    def parse(cls, value: Union[str, "Group"]) -> "Group":
        """
        Parse a group label, accepting common spellings.

        Raises:
            AnnotationError: If the label is not recognised
        """
        if isinstance(value, Group):
            return value
        key = str(value).strip().lower().replace("_", " ").replace("-", " ")
        key = " ".join(key.split())
        try:
            return cls(GROUP_ALIASES.get(key, key))
        except ValueError:
            raise AnnotationError(
                f"Unknown experimental group '{value}'. "
                f"Expected one of: {', '.join(g.value for g in cls)}"
            ) from None


GROUP_ALIASES: Dict[str, str] = {
    "neg": "negative",
    "negative control": "negative",
    "neg control": "negative",
    "scr": "scrambled",
    "scrambled control": "scrambled",
    "mock": "empty",
    "empty well": "empty",
    "sirna": "target",
    "treated": "target",
    "targeted": "target",
}

CONTROL_GROUPS = [Group.NEGATIVE, Group.SCRAMBLED, Group.EMPTY]


# =============================================================================
# Annotation Record
# =============================================================================

class AnnotationRecord(BaseModel):
    """
    One row of the plate layout.

    Example:
        >>> record = AnnotationRecord(well="A01_01", group="target", gene_symbol="KIF11")
        >>> record.group
        <Group.TARGET: 'target'>
    """

    model_config = ConfigDict(frozen=True)

    well: str
    group: Group
    gene_symbol: Optional[str] = None

    @field_validator("well", mode="before")
    @classmethod
    def normalise_well(cls, v):
        """Store wells in plate-layout key format."""
        return normalise_well_id(v)

    @field_validator("group", mode="before")
    @classmethod
    def parse_group(cls, v):
        """Accept aliases and arbitrary capitalisation."""
        return Group.parse(v)

    @field_validator("gene_symbol", mode="before")
    @classmethod
    def clean_gene_symbol(cls, v):
        """Treat blanks and NaN as missing."""
        if v is None or (isinstance(v, float) and pd.isna(v)):
            return None
        text = str(v).strip()
        return text or None

    @property
    def is_control(self) -> bool:
        return self.group in CONTROL_GROUPS


# =============================================================================
# Loading and Validation
# =============================================================================

def _resolve_column(df: pd.DataFrame, name: str, required: bool = True) -> Optional[str]:
    """Find a column by case- and whitespace-insensitive name."""
    wanted = name.strip().lower()
    for col in df.columns:
        if str(col).strip().lower() == wanted:
            return col
    if required:
        raise AnnotationError(
            f"Plate layout is missing column '{name}'. Found: {', '.join(map(str, df.columns))}"
        )
    return None


def validate_annotation(
    df: pd.DataFrame,
    well_column: str = "Position",
    group_column: str = "Group",
    gene_column: str = "Gene Symbol",
) -> pd.DataFrame:
    """
    Validate a raw plate layout and convert it to the standard annotation table.

    Args:
        df: Raw plate layout
        well_column: Column holding well positions
        group_column: Column holding experimental groups
        gene_column: Column holding gene symbols (optional in the input)

    Returns:
        DataFrame with columns ``well``, ``group``, ``gene_symbol``

    Raises:
        AnnotationError: On missing columns, unknown groups or duplicate wells
    """
    well_col = _resolve_column(df, well_column)
    group_col = _resolve_column(df, group_column)
    gene_col = _resolve_column(df, gene_column, required=False)

    records: List[AnnotationRecord] = []
    for row_number, row_values in enumerate(df.to_dict("records"), start=1):
        if pd.isna(row_values[well_col]):
            raise AnnotationError(f"Plate layout row {row_number} has no well position")
        try:
            record = AnnotationRecord(
                well=str(row_values[well_col]),
                group=row_values[group_col],
                gene_symbol=row_values[gene_col] if gene_col is not None else None,
            )
        except ValidationError as exc:
            messages = "; ".join(err["msg"] for err in exc.errors())
            raise AnnotationError(f"Plate layout row {row_number}: {messages}") from exc
        records.append(record)

    annotation = pd.DataFrame(
        {
            C.WELL: [r.well for r in records],
            C.GROUP: [r.group.value for r in records],
            C.GENE_SYMBOL: [r.gene_symbol for r in records],
        }
    )

    duplicated = annotation.loc[annotation[C.WELL].duplicated(), C.WELL].unique().tolist()
    if duplicated:
        raise AnnotationError(f"Duplicate wells in plate layout: {', '.join(duplicated)}")

    missing_target = annotation[
        (annotation[C.GROUP] == Group.TARGET.value) & annotation[C.GENE_SYMBOL].isna()
    ]
    if len(missing_target) > 0:
        logger.warning(f"{len(missing_target)} target well(s) have no gene symbol")

    return annotation


def load_annotation(
    path: Union[str, Path],
    well_column: str = "Position",
    group_column: str = "Group",
    gene_column: str = "Gene Symbol",
    sheet_name: Optional[str] = None,
) -> pd.DataFrame:
    """
    Load and validate a plate layout file.

    Args:
        path: Excel, CSV or TSV file
        well_column: Column holding well positions
        group_column: Column holding experimental groups
        gene_column: Column holding gene symbols
        sheet_name: Excel sheet (default: first)

    Returns:
        Annotation table (``well``, ``group``, ``gene_symbol``)

    Raises:
        MissingInputError: If the file is absent or unreadable
        AnnotationError: If the layout is malformed
    """
    logger.info(f"Loading plate layout from {path}")
    raw = read_table(path, sheet_name=sheet_name)
    annotation = validate_annotation(
        raw,
        well_column=well_column,
        group_column=group_column,
        gene_column=gene_column,
    )

    group_counts = annotation[C.GROUP].value_counts().to_dict()
    logger.info(f"Loaded {len(annotation)} annotated wells: {group_counts}")
    return annotation


def annotation_records(annotation: pd.DataFrame) -> List[AnnotationRecord]:
    """Convert an annotation table back into records."""
    return [
        AnnotationRecord(well=row[C.WELL], group=row[C.GROUP], gene_symbol=row[C.GENE_SYMBOL])
        for _, row in annotation.iterrows()
    ]
