"""File logging setup.

The terminal belongs to the renderer, so log records go to a dated file in
``~/.caroushell/logs`` instead of stderr.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from caroushell.config import config_folder

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_log_dir() -> Path:
    return config_folder("logs")


def get_log_file_path(when: datetime | None = None) -> Path:
    d = when or datetime.now()
    return get_log_dir() / f"{d:%m-%d}.txt"


def setup_logging(level: str = "info", log_file: Path | None = None) -> Path:
    """Route the ``caroushell`` loggers to a dated log file.

    Returns the path being written to.
    """
    path = log_file or get_log_file_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger = logging.getLogger("caroushell")
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False
    return path
