"""Logging setup for the command line entry point."""

from __future__ import annotations

import logging
import os
import sys

PACKAGE_LOGGER = "codeql_build_tracer"
DEFAULT_LEVEL = "info"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _coerce_level(level: str | int | None) -> int:
    if level is None:
        return logging.getLevelName(DEFAULT_LEVEL.upper())
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"unknown log level '{level}'")
    return resolved


def configure_logging(
    level: str | int | None = None,
    log_file: str | os.PathLike[str] | None = None,
) -> logging.Logger:
    """Attach stderr (and optionally file) handlers to the package logger.

    Calling it again replaces the handlers installed by a previous call.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(_coerce_level(level))
    for handler in list(logger.handlers):
        if getattr(handler, "_codeql_build_tracer", False):
            logger.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        os.makedirs(os.path.dirname(os.fspath(log_file)) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    formatter = logging.Formatter(_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler._codeql_build_tracer = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    logger.propagate = False
    return logger


__all__ = ["configure_logging"]
