from __future__ import annotations

"""
Logging Configuration Models.

Settings consumed by `configure_logging` and the level name lookup.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

LEVELS: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


@dataclass(frozen=True)
class LoggingConfig:
    """
    Immutable description of the logging setup.

    Attributes:
        level: Minimum severity name (unknown names fall back to INFO).
        console: Emit records to stderr.
        log_file: Optional path of a rotating diagnostic log.
        max_bytes: Size of one log segment before rotation.
        backup_count: Number of rotated segments kept.
        console_fmt: Format of stderr records.
        file_fmt: Format of log file records.
        datefmt: Timestamp format of log file records.
    """
    level: str = "WARNING"
    console: bool = True
    log_file: Optional[str] = None

    max_bytes: int = 1024 * 1024
    backup_count: int = 2

    console_fmt: str = "%(levelname)s | %(message)s"
    file_fmt: str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"


def parse_level(level: Optional[str]) -> int:
    """Map a level name to its numeric value, defaulting to INFO."""
    if not level:
        return logging.INFO
    return LEVELS.get(str(level).strip().upper(), logging.INFO)
