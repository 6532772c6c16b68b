"""Diagnostics for audit runs.

Every module logs under the ``standards_audit`` tree. The CLI attaches
handlers once per invocation; library callers get nothing unless they
configure logging themselves.
"""

from __future__ import annotations

import logging
from pathlib import Path

ROOT_LOGGER = "standards_audit"
CONSOLE_FORMAT = "[standards-audit] %(levelname)s %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """``get_logger("matcher")`` returns ``standards_audit.matcher``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


def configure_logging(*, verbose: bool = False, log_file: Path | None = None) -> logging.Logger:
    """Send warnings (or debug output with ``verbose``) to stderr.

    ``log_file`` additionally receives the full debug trace of the run.
    """
    console_level = logging.DEBUG if verbose else logging.WARNING
    root = logging.getLogger(ROOT_LOGGER)
    root.propagate = False
    _drop_handlers(root)

    root.addHandler(_handler(logging.StreamHandler(), console_level, CONSOLE_FORMAT))
    if log_file is None:
        root.setLevel(console_level)
    else:
        root.addHandler(
            _handler(logging.FileHandler(log_file, encoding="utf-8"), logging.DEBUG, FILE_FORMAT)
        )
        root.setLevel(logging.DEBUG)
    return root


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _drop_handlers(logger: logging.Logger) -> None:
    # Repeated CLI invocations in one process reuse this logger.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


__all__ = ["configure_logging", "get_logger"]
