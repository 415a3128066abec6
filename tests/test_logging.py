"""
Tests for the logging configuration module.

Tests the centralized logging configuration functionality.
"""

import logging
import os
from unittest.mock import patch

import pytest

from octopus_sync.utils.logging import (
    CONSOLE_FORMAT,
    DATE_FORMAT,
    LOG_FILE_PREFIX,
    ROOT_LOGGER_NAME,
    VERBOSE_FORMAT,
    ColoredFormatter,
    cleanup_old_logs,
    get_log_file_path,
    get_log_level_from_env,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_root_logger():
    """Restore the package logger after each test."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    yield
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.disabled = False
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


class TestConstants:
    """Tests for module constants."""

    def test_console_format_defined(self):
        assert "%(message)s" in CONSOLE_FORMAT

    def test_verbose_format_shows_thread(self):
        """Test worker threads are identifiable in verbose output."""
        assert "%(threadName)s" in VERBOSE_FORMAT

    def test_date_format_defined(self):
        assert DATE_FORMAT is not None


class TestGetLogLevelFromEnv:
    """Tests for get_log_level_from_env function."""

    @patch.dict(os.environ, {"OCTOPUS_SYNC_DEBUG": "1"}, clear=True)
    def test_debug_mode_from_env(self):
        assert get_log_level_from_env() == logging.DEBUG

    @patch.dict(os.environ, {"OCTOPUS_SYNC_LOG_LEVEL": "warning"}, clear=True)
    def test_level_name_from_env(self):
        assert get_log_level_from_env() == logging.WARNING

    @patch.dict(os.environ, {"OCTOPUS_SYNC_LOG_LEVEL": "chatty"}, clear=True)
    def test_unknown_level_defaults_to_info(self):
        assert get_log_level_from_env() == logging.INFO

    @patch.dict(os.environ, {}, clear=True)
    def test_default_is_info(self):
        assert get_log_level_from_env() == logging.INFO


class TestGetLogFilePath:
    """Tests for get_log_file_path function."""

    @patch.dict(os.environ, {}, clear=True)
    def test_daily_file_in_log_dir(self, tmp_path):
        path = get_log_file_path(tmp_path)
        assert path.parent == tmp_path
        assert path.name.startswith(LOG_FILE_PREFIX)
        assert path.suffix == ".log"

    @patch.dict(os.environ, {"OCTOPUS_SYNC_LOG_FILE": "none"}, clear=True)
    def test_disabled_from_env(self, tmp_path):
        assert get_log_file_path(tmp_path) is None

    def test_explicit_file_from_env(self, tmp_path):
        target = tmp_path / "run.log"
        with patch.dict(os.environ, {"OCTOPUS_SYNC_LOG_FILE": str(target)}):
            assert get_log_file_path() == target


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_console_only(self):
        logger = setup_logging(level=logging.WARNING, enable_file_logging=False)

        assert logger.name == ROOT_LOGGER_NAME
        assert len(logger.handlers) == 1
        assert logger.handlers[0].level == logging.WARNING
        assert logger.level == logging.WARNING
        assert logger.propagate is False

    def test_verbose_forces_debug(self):
        logger = setup_logging(level=logging.ERROR, verbose=True, enable_file_logging=False)
        assert logger.handlers[0].level == logging.DEBUG
        assert logger.handlers[0].formatter._fmt == VERBOSE_FORMAT

    def test_file_handler_captures_debug(self, tmp_path):
        log_file = tmp_path / "logs" / "sync.log"

        logger = setup_logging(level=logging.WARNING, log_file=log_file)
        get_logger("octopus_sync.sync.engine").debug("detail for the file")
        for handler in logger.handlers:
            handler.flush()

        assert logger.level == logging.DEBUG
        assert "detail for the file" in log_file.read_text()

    def test_repeated_setup_does_not_duplicate(self):
        setup_logging(enable_file_logging=False)
        logger = setup_logging(enable_file_logging=False)
        assert len(logger.handlers) == 1

    def test_plain_formatter_without_colors(self):
        logger = setup_logging(enable_file_logging=False, use_colors=False)
        assert not isinstance(logger.handlers[0].formatter, ColoredFormatter)


class TestColoredFormatter:
    """Tests for ColoredFormatter."""

    def make_record(self):
        return logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", None, None)

    def test_no_colors_when_disabled(self):
        formatter = ColoredFormatter(CONSOLE_FORMAT, use_colors=False)
        assert formatter.format(self.make_record()) == "ERROR: boom"

    def test_colors_when_supported(self):
        with patch.object(ColoredFormatter, "_supports_color", return_value=True):
            formatter = ColoredFormatter(CONSOLE_FORMAT)
        record = self.make_record()

        output = formatter.format(record)

        assert "\033[31m" in output
        # The record itself keeps its plain level name
        assert record.levelname == "ERROR"

    @patch.dict(os.environ, {"NO_COLOR": "1"})
    def test_no_color_env(self):
        with patch("sys.stderr") as stderr:
            stderr.isatty.return_value = True
            assert ColoredFormatter(CONSOLE_FORMAT).use_colors is False


class TestCleanupOldLogs:
    """Tests for cleanup_old_logs."""

    def test_keeps_most_recent(self, tmp_path):
        for day in range(5):
            path = tmp_path / f"{LOG_FILE_PREFIX}2024010{day}.log"
            path.write_text("x")
            os.utime(path, (1_700_000_000 + day, 1_700_000_000 + day))
        (tmp_path / "other.log").write_text("kept")

        deleted = cleanup_old_logs(tmp_path, keep_count=2)

        assert deleted == 3
        remaining = sorted(p.name for p in tmp_path.iterdir())
        assert remaining == [
            f"{LOG_FILE_PREFIX}20240103.log",
            f"{LOG_FILE_PREFIX}20240104.log",
            "other.log",
        ]

    def test_zero_keeps_everything(self, tmp_path):
        (tmp_path / f"{LOG_FILE_PREFIX}1.log").write_text("x")
        assert cleanup_old_logs(tmp_path, keep_count=0) == 0

    def test_missing_directory(self, tmp_path):
        assert cleanup_old_logs(tmp_path / "missing") == 0


class TestHelpers:
    """Tests for get_logger."""

    def test_get_logger_prefixes_name(self):
        assert get_logger("custom").name == f"{ROOT_LOGGER_NAME}.custom"
        assert get_logger("octopus_sync.api").name == "octopus_sync.api"
