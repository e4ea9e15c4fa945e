from __future__ import annotations

from .config import LoggingConfig
from .core import (
    CONFIGURED_FLAG_ATTR,
    QUEUE_LISTENER_ATTR,
    configure_logging,
    get_logger,
    shutdown_logging,
)
from .handlers import HANDLER_TAG_ATTR

__all__ = [
    "CONFIGURED_FLAG_ATTR",
    "HANDLER_TAG_ATTR",
    "QUEUE_LISTENER_ATTR",
    "LoggingConfig",
    "configure_logging",
    "get_logger",
    "shutdown_logging",
]
