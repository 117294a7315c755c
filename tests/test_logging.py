"""Tests for docsync.logging."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from docsync.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def _restore_root_logger():  # type: ignore[no-untyped-def]
    logger = logging.getLogger("docsync")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = propagate


def test_get_logger_names_children() -> None:
    assert get_logger().name == "docsync"
    assert get_logger("synchronizer").name == "docsync.synchronizer"


def test_configure_logging_replaces_handlers() -> None:
    configure_logging()
    logger = configure_logging(verbose=True)

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert logger.propagate is False


def test_log_file_receives_debug_records(tmp_path: Path) -> None:
    log_path = tmp_path / "logs" / "docsync.log"
    logger = configure_logging(verbose=False, log_file=log_path)

    get_logger("tests").debug("detail for the file")
    for handler in logger.handlers:
        handler.flush()

    console = [handler for handler in logger.handlers if not isinstance(handler, logging.FileHandler)]
    assert console[0].level == logging.INFO
    assert "docsync.tests: detail for the file" in log_path.read_text(encoding="utf-8")
