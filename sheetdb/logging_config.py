"""Application-wide logging configuration utilities."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_CONFIGURED = False


def configure_logging(level: int = logging.INFO, log_path: Optional[Path] = None) -> None:
    """Configure the root logger for SheetDB.

    Parameters
    ----------
    level:
        The minimum logging level for the root logger.
    log_path:
        Optional file that receives a copy of every record.  Parent
        directories are created on demand.
    """

    global _CONFIGURED

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        root_logger.setLevel(level)
    else:
        root_logger.setLevel(min(root_logger.level, level))

    formatter = logging.Formatter(LOG_FORMAT)
    if not _CONFIGURED:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        root_logger.addHandler(stream_handler)
        _CONFIGURED = True

    if log_path is None:
        return

    log_path = Path(log_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    already_configured = any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(log_path.resolve())
        for handler in root_logger.handlers
    )
    if not already_configured:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    root_logger.debug("Logging configured. Writing to %s", log_path)
