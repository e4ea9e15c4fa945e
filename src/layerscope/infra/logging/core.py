from __future__ import annotations

"""
Logging Bootstrap.

Configures the root logger once per process. Records are pushed through a
QueueHandler and written by a QueueListener thread, so file I/O never runs
on the thread that is composing trees.
"""

import atexit
import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener
from typing import List, Optional

from layerscope.infra.logging.config import LoggingConfig, parse_level
from layerscope.infra.logging.handlers import (
    create_console_handler,
    create_file_handler,
    is_our_handler,
    tag_handler,
)

CONFIGURED_FLAG_ATTR: str = "_layerscope_configured"
QUEUE_LISTENER_ATTR: str = "_layerscope_queue_listener"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def configure_logging(cfg: LoggingConfig, *, force: bool = False) -> logging.Logger:
    """
    Attach the layerscope handlers to the root logger.

    Repeated calls are no-ops unless `force` is set, in which case the
    previous handlers and listener are torn down first.

    Args:
        cfg: Logging settings.
        force: Reconfigure even if already configured.

    Returns:
        logging.Logger: The root logger.
    """
    root = logging.getLogger()
    if getattr(root, CONFIGURED_FLAG_ATTR, False) and not force:
        return root

    try:
        return _install(root, cfg)
    except Exception:
        return _emergency_console(root)


def _install(root: logging.Logger, cfg: LoggingConfig) -> logging.Logger:
    level = parse_level(cfg.level)
    root.setLevel(level)
    shutdown_logging()

    handlers: List[logging.Handler] = []
    if cfg.console:
        handlers.append(create_console_handler(level, logging.Formatter(cfg.console_fmt)))
    if cfg.log_file:
        file_handler = create_file_handler(
            cfg.log_file,
            level,
            logging.Formatter(cfg.file_fmt, datefmt=cfg.datefmt),
            cfg.max_bytes,
            cfg.backup_count,
        )
        if file_handler is not None:
            handlers.append(file_handler)

    if not handlers:
        return root

    log_queue: queue.Queue[logging.LogRecord] = queue.Queue(-1)
    listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    listener.start()

    root.addHandler(tag_handler(QueueHandler(log_queue)))
    setattr(root, QUEUE_LISTENER_ATTR, listener)
    setattr(root, CONFIGURED_FLAG_ATTR, True)
    atexit.register(_stop_listener, listener)
    return root


def shutdown_logging() -> None:
    """Flush and detach everything `configure_logging` installed."""
    root = logging.getLogger()

    listener: Optional[QueueListener] = getattr(root, QUEUE_LISTENER_ATTR, None)
    if listener is not None:
        _stop_listener(listener)
        setattr(root, QUEUE_LISTENER_ATTR, None)

    for handler in list(root.handlers):
        if is_our_handler(handler):
            root.removeHandler(handler)
            handler.close()

    setattr(root, CONFIGURED_FLAG_ATTR, False)


def _stop_listener(listener: QueueListener) -> None:
    # stop() joins the worker thread; a second call would fail on the cleared thread
    if getattr(listener, "_thread", None) is None:
        return
    try:
        listener.stop()
    except RuntimeError as e:
        sys.stderr.write(f"WARNING: log listener did not stop cleanly: {e}\n")


def _emergency_console(root: logging.Logger) -> logging.Logger:
    shutdown_logging()
    root.setLevel(logging.INFO)
    sh = logging.StreamHandler(sys.stderr)
    sh.setFormatter(logging.Formatter("CRITICAL FALLBACK | %(levelname)s | %(message)s"))
    root.addHandler(tag_handler(sh))
    root.warning("Diagnostic infrastructure failed. Switched to emergency console.")
    return root
