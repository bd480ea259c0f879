"""
Well identifier parsing and normalisation.

The imaging instrument names wells ``W<row><col>_P<plate>`` (``WA01_P1``),
while plate layouts key them as ``<row><col>_<plate>`` with a two-digit plate
number (``A01_01``). Normalisation converts the former into the latter and
leaves already-normalised identifiers untouched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, NamedTuple, Optional

from phenocount.diagnostics import Diagnostics
from phenocount.exceptions import IdentifierMismatchError
from phenocount.utils.logging import logger


RAW_WELL_PATTERN = re.compile(r"^W(?P<row>[A-Pa-p])(?P<column>\d{2})_P(?P<plate>\d+)$")
NORMALISED_WELL_PATTERN = re.compile(r"^(?P<row>[A-P])(?P<column>\d{2})_(?P<plate>\d{2,})$")


class WellPosition(NamedTuple):
    """Parsed well identifier."""

    row: str
    column: int
    plate: int

    @property
    def key(self) -> str:
        """Plate-layout key, e.g. ``A01_01``."""
        return f"{self.row}{self.column:02d}_{self.plate:02d}"


def parse_well_id(well_id: str) -> Optional[WellPosition]:
    """
    Parse a raw or normalised well identifier.

    Args:
        well_id: Identifier such as ``WA01_P1`` or ``A01_01``

    Returns:
        WellPosition, or None if the identifier matches neither format
    """
    text = str(well_id).strip()
    match = RAW_WELL_PATTERN.match(text) or NORMALISED_WELL_PATTERN.match(text)
    if match is None:
        return None
    return WellPosition(
        row=match.group("row").upper(),
        column=int(match.group("column")),
        plate=int(match.group("plate")),
    )


def is_normalised_well_id(well_id: str) -> bool:
    """Check whether an identifier is already in plate-layout key format."""
    return NORMALISED_WELL_PATTERN.match(str(well_id)) is not None


def normalise_well_id(well_id: str) -> str:
    """
    Convert an instrument well identifier to the plate-layout key format.

    Identifiers matching neither format are returned unchanged (stripped);
    use ``normalise_well_ids`` to have them reported.

    Example:
        >>> normalise_well_id("WA01_P1")
        'A01_01'
        >>> normalise_well_id("A01_01")
        'A01_01'
    """
    text = str(well_id).strip()
    if is_normalised_well_id(text):
        return text

    position = parse_well_id(text)
    if position is None:
        return text
    return position.key


@dataclass
class NormalisationResult:
    """Mapping from raw to normalised identifiers plus the ones that failed to parse."""

    mapping: Dict[str, str]
    unparsed: List[str] = field(default_factory=list)

    @property
    def diagnostics(self) -> Diagnostics:
        return Diagnostics(unparsed_identifiers=list(self.unparsed))

    def __getitem__(self, raw_id: str) -> str:
        return self.mapping[raw_id]

    def __len__(self) -> int:
        return len(self.mapping)


def normalise_well_ids(
    well_ids: Iterable[str],
    strict: bool = False,
) -> NormalisationResult:
    """
    Normalise a collection of identifiers, reporting those that do not parse.

    Args:
        well_ids: Raw identifiers (duplicates are allowed)
        strict: Raise IdentifierMismatchError if any identifier does not parse

    Returns:
        NormalisationResult
    """
    mapping: Dict[str, str] = {}
    unparsed: List[str] = []

    for raw_id in well_ids:
        if raw_id in mapping:
            continue
        mapping[raw_id] = normalise_well_id(raw_id)
        if parse_well_id(raw_id) is None:
            unparsed.append(raw_id)

    if unparsed:
        if strict:
            raise IdentifierMismatchError(
                unparsed,
                message=f"{len(unparsed)} well identifier(s) match no known format: "
                        f"{', '.join(map(str, unparsed[:5]))}",
            )
        logger.warning(
            f"{len(unparsed)} well identifier(s) match no known format and were kept as-is"
        )

    return NormalisationResult(mapping=mapping, unparsed=unparsed)
