# ABOUTME: Tests for pipeline logging setup and stage timing
# ABOUTME: Timer context manager and TimingStats tree formatting

import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from utils.logging_utils import LOGGER_NAME, Timer, TimingStats, setup_logging


@pytest.fixture
def restore_logger():
    logger = logging.getLogger(LOGGER_NAME)
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield logger
    logger.setLevel(saved[0])
    logger.handlers[:] = saved[1]
    logger.propagate = saved[2]


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_levels(self, restore_logger):
        assert setup_logging().level == logging.INFO
        assert setup_logging(verbose=True).level == logging.DEBUG
        assert setup_logging(quiet=True).level == logging.WARNING
        assert setup_logging(verbose=True, quiet=True).level == logging.WARNING

    def test_single_handler(self, restore_logger):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1
        assert logger.propagate is False


class TestTimer:
    """Tests for the Timer context manager."""

    def test_records_elapsed(self):
        with Timer("work") as timer:
            pass
        assert timer.elapsed is not None
        assert timer.elapsed >= 0

    def test_exception_propagates(self):
        timer = Timer("failing")
        with pytest.raises(RuntimeError):
            with timer:
                raise RuntimeError("boom")
        assert timer.elapsed is not None


class TestTimingStats:
    """Tests for TimingStats formatting."""

    def test_percentage(self):
        assert TimingStats("a", 0.5).get_percentage(2.0) == 25.0
        assert TimingStats("a", 0.5).get_percentage(0) == 0

    def test_format_tree(self):
        row = TimingStats("Export", 1.5).format_tree(3.0)

        assert "\n" not in row
        assert row.startswith("Export ")
        assert "1.5s" in row
        assert "50.0%" in row

    def test_format_tree_milliseconds(self):
        row = TimingStats("PLY decode", 0.25).format_tree(1.0)
        assert "250ms" in row
        assert "25.0%" in row
