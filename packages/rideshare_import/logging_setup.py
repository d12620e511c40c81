"""Logging for ``rideshare_import``.

Everything logs under the ``rideshare_import`` logger. The CLI calls
:func:`configure_logging` once; modules ask for
``get_logger("rideshare_import.<module>")`` and never add handlers.
Until the CLI configures output, records are dropped quietly.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "rideshare_import"
_LEVEL_ENV = "RIDESHARE_IMPORT_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_CONFIGURED = False


def _level_from_text(text: str) -> int | None:
    text = text.strip().upper()
    if text.isdigit():
        return int(text)
    value = logging.getLevelNamesMapping().get(text)
    return value if isinstance(value, int) else None


def _resolve_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if level:
        parsed = _level_from_text(level)
        if parsed is not None:
            return parsed
    env_level = os.getenv(_LEVEL_ENV)
    if env_level:
        parsed = _level_from_text(env_level)
        if parsed is not None:
            return parsed
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Send ``rideshare_import`` records to ``stream``; later calls are no-ops.

    ``level`` may be a number or a level name. Without one (or with a name
    logging does not know) ``RIDESHARE_IMPORT_LOG_LEVEL`` decides, then INFO.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in [h for h in pkg_logger.handlers if isinstance(h, logging.NullHandler)]:
        pkg_logger.removeHandler(h)

    resolved = _resolve_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    pkg_logger.setLevel(resolved)
    pkg_logger.addHandler(handler)
    pkg_logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
