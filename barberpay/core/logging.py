"""JSON logging for barberpay; ``extra=`` fields become top-level keys."""
from __future__ import annotations

import logging

from pythonjsonlogger import jsonlogger

_QUIET_LOGGERS = ("stripe", "apscheduler.executors.default")


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.setLevel(level.upper())

    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root.addHandler(handler)
    # The Stripe SDK logs every request line at INFO; the scheduler logs every job run.
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


__all__ = ["setup_logging", "get_logger"]
