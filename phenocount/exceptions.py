"""
Exceptions raised by the PhenoCount pipeline.

Each error also derives from the closest built-in exception so callers that
already catch ``FileNotFoundError`` or ``ValueError`` keep working.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple


class PhenoCountError(Exception):
    """Base class for all pipeline errors."""
    pass


class MissingInputError(PhenoCountError, FileNotFoundError):
    """An input file is absent or cannot be read."""

    def __init__(self, path, reason: Optional[str] = None):
        self.path = path
        self.reason = reason
        message = f"Input file not found or unreadable: {path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class AnnotationError(PhenoCountError, ValueError):
    """The plate layout table is malformed."""
    pass


class IdentifierMismatchError(PhenoCountError, ValueError):
    """Well identifiers could not be matched to the plate layout."""

    def __init__(self, identifiers: Sequence[str], message: Optional[str] = None):
        self.identifiers: List[str] = list(identifiers)
        if message is None:
            preview = ", ".join(self.identifiers[:5])
            more = "" if len(self.identifiers) <= 5 else f" (+{len(self.identifiers) - 5} more)"
            message = f"{len(self.identifiers)} well identifier(s) did not match: {preview}{more}"
        super().__init__(message)


class EmptyWellError(PhenoCountError, ZeroDivisionError):
    """A well has a total cell count of zero, so percentages are undefined."""

    def __init__(self, wells: Sequence[str]):
        self.wells: List[str] = list(wells)
        super().__init__(f"Wells with zero total cell count: {', '.join(self.wells)}")


class DegenerateTransformError(PhenoCountError, ArithmeticError):
    """A percentage of exactly 0 or 1 would produce an infinite logit."""

    def __init__(self, pairs: Sequence[Tuple[str, str]]):
        self.pairs: List[Tuple[str, str]] = list(pairs)
        preview = ", ".join(f"{well}/{cls}" for well, cls in self.pairs[:5])
        super().__init__(
            f"{len(self.pairs)} (well, class) pair(s) have percentage 0 or 1: {preview}"
        )


class PivotAmbiguityError(PhenoCountError, ValueError):
    """A (well, class) pair occurs more than once in a long table."""

    def __init__(self, pairs: Sequence[Tuple[str, str]]):
        self.pairs: List[Tuple[str, str]] = list(pairs)
        preview = ", ".join(f"{well}/{cls}" for well, cls in self.pairs[:5])
        super().__init__(f"Duplicate (well, class) pairs: {preview}")


class MissingFeatureError(PhenoCountError, ValueError):
    """Wells do not share the same set of phenotype classes."""

    def __init__(self, missing: Sequence[Tuple[str, str]]):
        self.missing: List[Tuple[str, str]] = list(missing)
        preview = ", ".join(f"{well}/{cls}" for well, cls in self.missing[:5])
        super().__init__(f"{len(self.missing)} missing (well, class) value(s): {preview}")


__all__ = [
    "PhenoCountError",
    "MissingInputError",
    "AnnotationError",
    "IdentifierMismatchError",
    "EmptyWellError",
    "DegenerateTransformError",
    "PivotAmbiguityError",
    "MissingFeatureError",
]
