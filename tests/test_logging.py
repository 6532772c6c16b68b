"""Logger hierarchy and handler setup."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from standards_audit.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    yield
    root = logging.getLogger("standards_audit")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.NOTSET)
    root.propagate = True


def test_module_loggers_live_under_package_tree() -> None:
    assert get_logger().name == "standards_audit"
    assert get_logger("matcher").name == "standards_audit.matcher"
    assert get_logger("matcher").parent is logging.getLogger("standards_audit")


def test_quiet_console_by_default() -> None:
    root = configure_logging()

    assert root.level == logging.WARNING
    assert root.propagate is False
    assert [type(handler) for handler in root.handlers] == [logging.StreamHandler]
    assert root.handlers[0].level == logging.WARNING


def test_log_file_captures_debug_while_console_stays_quiet(tmp_path: Path) -> None:
    log_file = tmp_path / "audit.log"
    root = configure_logging(log_file=log_file)

    get_logger("engine").debug("Stage %s -> %s", "idle", "detecting")
    for handler in root.handlers:
        handler.flush()

    assert root.level == logging.DEBUG
    console = next(h for h in root.handlers if not isinstance(h, logging.FileHandler))
    assert console.level == logging.WARNING
    assert "DEBUG standards_audit.engine: Stage idle -> detecting" in log_file.read_text(
        encoding="utf-8"
    )


def test_reconfiguring_replaces_handlers(tmp_path: Path) -> None:
    configure_logging(log_file=tmp_path / "first.log")
    root = configure_logging(verbose=True)

    assert len(root.handlers) == 1
    assert root.level == logging.DEBUG
