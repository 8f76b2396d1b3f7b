"""Tests for the logging setup module."""

import logging
import sys
from collections.abc import Iterator

import pytest

from receipt_ocr.utils.logger import (
    DATE_FORMAT,
    LOG_FORMAT,
    get_logger,
    setup_logging,
)


@pytest.fixture
def bare_root() -> Iterator[logging.Logger]:
    """Root logger stripped of handlers, restored afterwards."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    saved_pil = logging.getLogger("PIL").level
    root.handlers.clear()
    yield root
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    logging.getLogger("PIL").setLevel(saved_pil)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_installs_stdout_handler(self, bare_root: logging.Logger) -> None:
        setup_logging("debug")

        (handler,) = bare_root.handlers
        assert isinstance(handler, logging.StreamHandler)
        assert handler.stream is sys.stdout
        assert handler.formatter._fmt == LOG_FORMAT
        assert handler.formatter.datefmt == DATE_FORMAT
        assert bare_root.level == logging.DEBUG

    def test_second_call_keeps_first_configuration(
        self, bare_root: logging.Logger
    ) -> None:
        setup_logging("WARNING")
        setup_logging("DEBUG")

        assert len(bare_root.handlers) == 1
        assert bare_root.level == logging.WARNING

    @pytest.mark.parametrize("level", ["verbose", "", "basicConfig"])
    def test_unknown_level_means_info(
        self, bare_root: logging.Logger, level: str
    ) -> None:
        setup_logging(level)
        assert bare_root.level == logging.INFO

    def test_image_libraries_stay_quiet(self, bare_root: logging.Logger) -> None:
        setup_logging("DEBUG")
        assert logging.getLogger("PIL").level == logging.WARNING

    def test_error_level_propagates_to_libraries(
        self, bare_root: logging.Logger
    ) -> None:
        setup_logging("ERROR")
        assert logging.getLogger("PIL").level == logging.ERROR


def test_get_logger_is_cached_by_name() -> None:
    logger = get_logger("receipt_ocr.tests")
    assert logger.name == "receipt_ocr.tests"
    assert get_logger("receipt_ocr.tests") is logger
