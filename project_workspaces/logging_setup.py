"""Logging configuration for project workspaces.

Every module logs through ``logging.getLogger(__name__)``; this module only
wires handlers onto the root logger for hosts that embed the orchestrator.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .constants import DataPaths

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
MAX_LOG_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3


def setup_logging(level: Optional[str] = None, log_file: Optional[Path] = None) -> None:
    """Setup logging to stderr and a rotating log file.

    Args:
        level: Log level name (defaults to ``LOG_LEVEL`` env var, then INFO)
        log_file: Log file path (defaults to the state directory log file).
            The file handler is skipped if the directory cannot be created.
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    target = log_file or DataPaths.default().log_file
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            target, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT
        )
    except OSError as e:
        logger.warning(f"File logging disabled ({target}): {e}")
    else:
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logger.info(f"Logging configured: level={log_level}")
