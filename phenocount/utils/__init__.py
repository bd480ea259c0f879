"""
Utility functions and classes for PhenoCount.
"""

from phenocount.utils.config import (
    ClassifierConfig,
    DataConfig,
    OutputConfig,
    PCAConfig,
    ProcessingConfig,
    ScreenConfig,
    create_default_config,
    load_config,
)
from phenocount.utils.io import (
    ensure_dir,
    load_json,
    read_table,
    require_file,
    save_json,
    save_table,
)
from phenocount.utils.logging import get_logger, logger, setup_logging

__all__ = [
    # Config
    "ScreenConfig",
    "DataConfig",
    "ProcessingConfig",
    "PCAConfig",
    "ClassifierConfig",
    "OutputConfig",
    "load_config",
    "create_default_config",
    # I/O
    "ensure_dir",
    "require_file",
    "read_table",
    "save_table",
    "save_json",
    "load_json",
    # Logging
    "logger",
    "setup_logging",
    "get_logger",
]
