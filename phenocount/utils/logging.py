"""
Logging configuration for PhenoCount.

Console and optional file output through loguru. Pipeline stages log row
counts at INFO and dropped or flagged rows at WARNING.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from loguru import logger

if TYPE_CHECKING:
    from loguru import Logger

# Remove default handler
logger.remove()

_configured = False
_handler_ids: list[int] = []


def _strip_markup(format_string: str) -> str:
    """Remove loguru colour tags for plain-text sinks."""
    for tag in ("green", "level", "cyan"):
        format_string = format_string.replace(f"<{tag}>", "").replace(f"</{tag}>", "")
    return format_string


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str | Path] = None,
    show_time: bool = True,
    show_location: bool = False,
) -> None:
    """
    Configure logging for PhenoCount.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a log file
        show_time: Whether to show timestamps
        show_location: Whether to show module/function/line of the call

    Example:
        >>> from phenocount.utils.logging import setup_logging, logger
        >>> setup_logging(level="DEBUG", log_file="screen.log")
        >>> logger.info("Loading plate layout")
    """
    global _configured

    # Only remove the handlers installed here, leaving e.g. pytest's caplog sinks alone
    while _handler_ids:
        logger.remove(_handler_ids.pop())

    format_parts = []
    if show_time:
        format_parts.append("<green>{time:YYYY-MM-DD HH:mm:ss}</green>")
    format_parts.append("<level>{level: <8}</level>")
    if show_location:
        format_parts.append("<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>")
    format_parts.append("<level>{message}</level>")

    format_string = " | ".join(format_parts)

    _handler_ids.append(
        logger.add(
            sys.stderr,
            format=format_string,
            level=level,
            colorize=True,
            backtrace=False,
            diagnose=False,
        )
    )

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        _handler_ids.append(
            logger.add(
                log_path,
                format=_strip_markup(format_string),
                level=level,
                rotation="10 MB",
                retention="1 week",
            )
        )

    _configured = True
    logger.debug(f"Logging configured: level={level}, file={log_file}")


def get_logger(name: str = "phenocount") -> "Logger":
    """
    Get a logger bound to a component name.

    Args:
        name: Component name attached to every record as ``extra["name"]``

    Returns:
        Logger instance
    """
    return logger.bind(name=name)


if not _configured:
    setup_logging(level="INFO")


__all__ = ["logger", "setup_logging", "get_logger"]
