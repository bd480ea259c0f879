"""
Joining the plate layout onto long count tables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

import pandas as pd

from phenocount.data import columns as C
from phenocount.diagnostics import Diagnostics
from phenocount.exceptions import IdentifierMismatchError
from phenocount.utils.logging import logger


@dataclass
class JoinResult:
    """Joined table plus the count wells that had no plate-layout entry."""

    table: pd.DataFrame
    unmatched_wells: List[str] = field(default_factory=list)
    dropped_rows: int = 0
    unused_annotations: List[str] = field(default_factory=list)

    @property
    def diagnostics(self) -> Diagnostics:
        return Diagnostics(
            unmatched_wells=list(self.unmatched_wells),
            dropped_rows=self.dropped_rows,
            unused_annotations=list(self.unused_annotations),
        )


def join_annotation(
    counts_long: pd.DataFrame,
    annotation: pd.DataFrame,
    strict: bool = False,
) -> JoinResult:
    """
    Attach group and gene symbol to every count row by normalised well.

    Rows whose well has no plate-layout entry are dropped and reported.

    Args:
        counts_long: Output of ``counts_to_long``
        annotation: Output of ``load_annotation``/``validate_annotation``
        strict: Raise IdentifierMismatchError instead of dropping rows

    Returns:
        JoinResult
    """
    annotation = annotation[[C.WELL, C.GROUP, C.GENE_SYMBOL]]
    if annotation[C.WELL].duplicated().any():
        raise ValueError("Annotation table has duplicate wells; validate it before joining")

    annotated_wells = set(annotation[C.WELL])
    count_wells = pd.unique(counts_long[C.WELL])

    unmatched = [well for well in count_wells if well not in annotated_wells]
    if unmatched and strict:
        raise IdentifierMismatchError(unmatched)

    joined = counts_long.merge(annotation, on=C.WELL, how="inner", validate="many_to_one")
    dropped = len(counts_long) - len(joined)

    present = set(count_wells)
    unused = [well for well in annotation[C.WELL] if well not in present]

    if unmatched:
        logger.warning(
            f"{len(unmatched)} well(s) have no plate-layout entry; dropped {dropped} count rows"
        )
    if unused:
        logger.debug(f"{len(unused)} annotated well(s) have no counts")

    logger.info(f"Joined plate layout: {len(joined)} rows across {joined[C.WELL].nunique()} wells")

    return JoinResult(
        table=joined,
        unmatched_wells=unmatched,
        dropped_rows=dropped,
        unused_annotations=unused,
    )
