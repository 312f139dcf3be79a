"""Session logging: every message goes to the terminal and to a per-run log file."""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

LOGGER_NAME = "vm_deploy"
LOG_FORMAT = "[%(asctime)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(LOGGER_NAME)

_step_number = 0


def session_log_path(log_dir: Path, *, started_at: datetime | None = None) -> Path:
    started_at = started_at or datetime.now()
    return log_dir / f"deploy_{started_at.strftime('%Y%m%d_%H%M%S')}.log"


def configure_logging(log_dir: Path, *, started_at: datetime | None = None) -> Path:
    """Attach console and file handlers to the package logger and return the log file path."""
    global _step_number
    _step_number = 0

    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = session_log_path(log_dir, started_at=started_at)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)

    logger.addHandler(console)
    logger.addHandler(file_handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return log_path


def log_step(message: str) -> None:
    global _step_number
    _step_number += 1
    logger.info("Step %d: %s", _step_number, message)
