from __future__ import annotations

import logging

_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str, level: str | int = "INFO") -> logging.Logger:
    """Named logger with a single stream handler; safe to call repeatedly."""
    log = logging.getLogger(name)
    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        log.addHandler(handler)
        log.propagate = False
    if isinstance(level, str):
        level = getattr(logging, level.strip().upper(), logging.INFO)
    log.setLevel(level)
    return log
