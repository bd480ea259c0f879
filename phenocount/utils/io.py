"""
File I/O utilities for PhenoCount.

Suffix-dispatched table reading and writing, plus JSON helpers for
diagnostics reports.
"""

from __future__ import annotations

import json
import pickle
import zipfile
from pathlib import Path
from typing import Any, Optional, Union

import numpy as np
import pandas as pd

from phenocount.exceptions import MissingInputError
from phenocount.utils.logging import logger


EXCEL_SUFFIXES = (".xlsx", ".xls", ".xlsm")
DELIMITED_SUFFIXES = {".csv": ",", ".tsv": "\t", ".txt": "\t"}
PICKLE_SUFFIXES = (".pkl", ".pickle")

# Reader failures reported as unreadable input
READ_ERRORS = (
    OSError,
    ValueError,
    EOFError,
    pickle.UnpicklingError,
    zipfile.BadZipFile,
    pd.errors.ParserError,
)


# =============================================================================
# Path Utilities
# =============================================================================

def ensure_dir(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path

    Returns:
        Path object
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def require_file(path: Union[str, Path]) -> Path:
    """
    Return ``path`` as a Path, raising MissingInputError if it is not a file.
    """
    path = Path(path)
    if not path.exists():
        raise MissingInputError(path)
    if not path.is_file():
        raise MissingInputError(path, reason="not a regular file")
    return path


# =============================================================================
# Table I/O
# =============================================================================

def read_table(
    path: Union[str, Path],
    index_col: Optional[int] = None,
    sheet_name: Optional[str] = None,
) -> pd.DataFrame:
    """
    Read a table, choosing the reader from the file suffix.

    Supports Excel (.xlsx/.xls/.xlsm), delimited text (.csv, .tsv, .txt) and
    pandas pickles (.pkl/.pickle).

    Args:
        path: Input file
        index_col: Column to use as the row index (delimited and Excel files)
        sheet_name: Excel sheet to read (default: first sheet)

    Returns:
        DataFrame

    Raises:
        MissingInputError: If the file does not exist or cannot be parsed
    """
    path = require_file(path)
    suffix = path.suffix.lower()

    try:
        if suffix in EXCEL_SUFFIXES:
            df = pd.read_excel(
                path,
                sheet_name=sheet_name if sheet_name is not None else 0,
                index_col=index_col,
            )
        elif suffix in DELIMITED_SUFFIXES:
            df = pd.read_csv(path, sep=DELIMITED_SUFFIXES[suffix], index_col=index_col)
        elif suffix in PICKLE_SUFFIXES:
            df = pd.read_pickle(path)
            if not isinstance(df, pd.DataFrame):
                raise MissingInputError(path, reason=f"pickle holds {type(df).__name__}, not a DataFrame")
        else:
            raise MissingInputError(path, reason=f"unsupported file type '{path.suffix}'")
    except MissingInputError:
        raise
    except READ_ERRORS as exc:
        raise MissingInputError(path, reason=str(exc)) from exc

    logger.debug(f"Read table with shape {df.shape} from {path}")
    return df


def save_table(
    df: pd.DataFrame,
    path: Union[str, Path],
    index: bool = False,
) -> Path:
    """
    Save a DataFrame as CSV/TSV (by suffix) or pickle.

    Args:
        df: Table to save
        path: Output path
        index: Whether to write the row index

    Returns:
        The output path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()

    if suffix in PICKLE_SUFFIXES:
        df.to_pickle(path)
    else:
        df.to_csv(path, sep=DELIMITED_SUFFIXES.get(suffix, ","), index=index)

    logger.debug(f"Saved table with shape {df.shape} to {path}")
    return path


# =============================================================================
# JSON I/O
# =============================================================================

def _to_serialisable(obj: Any) -> Any:
    """Convert numpy scalars and arrays for json.dump."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serialisable")


def save_json(data: Any, path: Union[str, Path], indent: int = 2) -> Path:
    """Save data to a JSON file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        json.dump(data, f, indent=indent, default=_to_serialisable)

    logger.debug(f"Saved JSON to {path}")
    return path


def load_json(path: Union[str, Path]) -> Any:
    """Load data from a JSON file."""
    path = require_file(path)

    with open(path) as f:
        return json.load(f)
