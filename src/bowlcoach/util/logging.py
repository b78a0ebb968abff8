"""Logging for the bowling analysis service.

Every module logs through :func:`get_logger`. Request milestones (upload, each
poll, reformat, fallback, remote cleanup) go through :func:`emit_event` as
``event key=value`` lines so a single analysis can be followed in the server
log by grepping for ``analysis.`` and ``gemini.`` events.
"""

from __future__ import annotations

import logging
import os
from typing import Any

_LOG_LEVEL = os.getenv("BOWLCOACH_LOG_LEVEL", "INFO").upper()


def _configure_root_logger() -> None:
    """Idempotently configure the root logger with a consistent formatter."""
    if getattr(_configure_root_logger, "_configured", False):
        return

    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(_LOG_LEVEL)
    root.handlers = [handler]

    _configure_root_logger._configured = True  # type: ignore[attr-defined]


def get_logger(name: str) -> logging.Logger:
    """Return a module-scoped logger with standard configuration applied."""
    _configure_root_logger()
    return logging.getLogger(name)


def set_level(level: str) -> None:
    """Change the level of the root logger after startup (e.g. ``--verbose``)."""
    global _LOG_LEVEL
    _LOG_LEVEL = level.upper()
    _configure_root_logger()
    logging.getLogger().setLevel(_LOG_LEVEL)


def emit_event(logger: logging.Logger, event: str, **fields: Any) -> None:
    """Log an ``event key=value ...`` line; fields set to None are left out."""
    kv_pairs = " ".join(f"{key}={value}" for key, value in fields.items() if value is not None)
    logger.info("%s %s", event, kv_pairs.strip())
