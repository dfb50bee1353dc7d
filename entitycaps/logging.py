"""Logger factory and queue-based logging setup."""

from __future__ import annotations

import logging
import os
from logging.handlers import QueueHandler, QueueListener
from queue import Queue
from typing import Optional, Union

__all__ = ["get_logger", "configure_logging", "resolve_level"]

_ROOT = "entitycaps"
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return the package logger for *name*."""

    if name == _ROOT or name.startswith(_ROOT + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT}.{name}")


def resolve_level(value: Union[str, int, None]) -> int:
    if value is None or value == "":
        value = os.environ.get("ENTITYCAPS_LOG_LEVEL", "")
    if isinstance(value, int):
        return value
    if not value:
        return logging.INFO
    level = logging.getLevelName(value.strip().upper())
    if isinstance(level, int):
        return level
    get_logger("logging").warning("Invalid log level: %r", value)
    return logging.INFO


def configure_logging(
    level: Union[str, int, None] = None,
    *,
    use_queue: bool = True,
) -> Optional[QueueListener]:
    """Configure the root logger.

    With ``use_queue`` the existing root handlers are moved behind a
    :class:`QueueListener` so that logging from cache and listener code
    never blocks on handler I/O.  The listener is returned and must be
    stopped by the caller.
    """

    root_logger = logging.getLogger()
    root_logger.setLevel(resolve_level(level))
    handlers = list(root_logger.handlers)
    if not handlers:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(_FORMAT))
        handlers = [console]
        if not use_queue:
            root_logger.addHandler(console)

    if not use_queue:
        return None

    for handler in handlers:
        root_logger.removeHandler(handler)

    log_queue: Queue = Queue(maxsize=4000)
    root_logger.addHandler(QueueHandler(log_queue))
    listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    listener.start()
    return listener
