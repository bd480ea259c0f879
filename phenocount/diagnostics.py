"""
Diagnostics collected while transforming screening tables.

Every processing stage returns its output table together with a
``Diagnostics`` record listing the rows it could not cover: identifiers that
failed to parse, wells without a plate-layout entry, empty wells, and
(well, class) pairs whose logit is degenerate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple


@dataclass
class Diagnostics:
    """Non-coverage report for one or more pipeline stages."""

    # Identifier normalisation
    unparsed_identifiers: List[str] = field(default_factory=list)

    # Annotation join
    unmatched_wells: List[str] = field(default_factory=list)
    dropped_rows: int = 0
    unused_annotations: List[str] = field(default_factory=list)

    # Normalisation / logit transform
    empty_wells: List[str] = field(default_factory=list)
    degenerate_rows: List[Tuple[str, str]] = field(default_factory=list)

    # Feature matrix
    missing_features: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        """Whether any row was dropped, flagged or filled.

        Unused annotations (layout wells without counts) are informational and
        do not count as an issue.
        """
        return bool(
            self.unparsed_identifiers
            or self.unmatched_wells
            or self.dropped_rows
            or self.empty_wells
            or self.degenerate_rows
            or self.missing_features
        )

    def merge(self, other: "Diagnostics") -> "Diagnostics":
        """Combine two reports into a new one; neither input is modified."""
        return Diagnostics(
            unparsed_identifiers=_union(self.unparsed_identifiers, other.unparsed_identifiers),
            unmatched_wells=_union(self.unmatched_wells, other.unmatched_wells),
            dropped_rows=self.dropped_rows + other.dropped_rows,
            unused_annotations=_union(self.unused_annotations, other.unused_annotations),
            empty_wells=_union(self.empty_wells, other.empty_wells),
            degenerate_rows=_union(self.degenerate_rows, other.degenerate_rows),
            missing_features=_union(self.missing_features, other.missing_features),
        )

    def summary(self) -> str:
        """Get summary string."""
        lines = ["Diagnostics"]
        lines.append(f"  Unparsed identifiers: {len(self.unparsed_identifiers)}")
        lines.append(f"  Unmatched wells: {len(self.unmatched_wells)} ({self.dropped_rows} rows dropped)")
        lines.append(f"  Unused annotations: {len(self.unused_annotations)}")
        lines.append(f"  Empty wells: {len(self.empty_wells)}")
        lines.append(f"  Degenerate (well, class) pairs: {len(self.degenerate_rows)}")
        lines.append(f"  Missing features: {len(self.missing_features)}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "unparsed_identifiers": list(self.unparsed_identifiers),
            "unmatched_wells": list(self.unmatched_wells),
            "dropped_rows": self.dropped_rows,
            "unused_annotations": list(self.unused_annotations),
            "empty_wells": list(self.empty_wells),
            "degenerate_rows": [list(pair) for pair in self.degenerate_rows],
            "missing_features": [list(pair) for pair in self.missing_features],
            "has_issues": self.has_issues,
        }


def _union(first: list, second: list) -> list:
    """Order-preserving union of two lists."""
    seen = set(first)
    merged = list(first)
    for item in second:
        if item not in seen:
            seen.add(item)
            merged.append(item)
    return merged
