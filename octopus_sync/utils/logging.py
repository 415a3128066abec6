"""
Logging configuration module for octopus_sync.

Provides centralized logging configuration with support for:
- Console and daily file logging
- Log levels from environment variables
- Verbose mode for detailed output
- Colored console output when the terminal supports it
- Retention cleanup of old log files
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "octopus_sync"

# Simplified format for console (less verbose)
CONSOLE_FORMAT = "%(levelname)s: %(message)s"

# Verbose format, also used for the log file
VERBOSE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] - %(message)s"
)

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_PREFIX = "octopus_sync_"

# Environment variable names
ENV_LOG_LEVEL = "OCTOPUS_SYNC_LOG_LEVEL"
ENV_DEBUG = "OCTOPUS_SYNC_DEBUG"
ENV_LOG_FILE = "OCTOPUS_SYNC_LOG_FILE"

LEVEL_NAMES = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _get_project_log_dir() -> Path:
    """Get the project logs directory (next to the package)."""
    return Path(__file__).resolve().parent.parent.parent / "logs"


PROJECT_LOG_DIR = _get_project_log_dir()

# Directory chosen by the last setup_logging() call
_configured_log_dir: Optional[Path] = None


class ColoredFormatter(logging.Formatter):
    """
    A logging formatter that adds ANSI color codes to the level name.

    Colors are only applied when output is to a terminal that supports them.
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and self._supports_color()

    def _supports_color(self) -> bool:
        """Check if the terminal supports colors."""
        if not hasattr(sys.stderr, "isatty") or not sys.stderr.isatty():
            return False

        # https://no-color.org/
        if os.environ.get("NO_COLOR"):
            return False

        return os.environ.get("TERM", "") != "dumb"

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with optional colors."""
        # Work on a copy so other handlers see the plain level name
        record = logging.makeLogRecord(record.__dict__)

        if self.use_colors and record.levelname in self.COLORS:
            color = self.COLORS[record.levelname]
            record.levelname = f"{color}{record.levelname}{self.RESET}"

        return super().format(record)


def get_log_level_from_env() -> int:
    """
    Get the logging level from environment variables.

    OCTOPUS_SYNC_DEBUG wins over OCTOPUS_SYNC_LOG_LEVEL; unknown level
    names fall back to INFO.

    Returns:
        Logging level constant (e.g., logging.DEBUG, logging.INFO)
    """
    if os.environ.get(ENV_DEBUG, "").lower() in ("1", "true", "yes"):
        return logging.DEBUG

    level_str = os.environ.get(ENV_LOG_LEVEL, "INFO").upper()
    return LEVEL_NAMES.get(level_str, logging.INFO)


def _daily_log_name() -> str:
    return f"{LOG_FILE_PREFIX}{datetime.now().strftime('%Y%m%d')}.log"


def get_log_file_path(log_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Get the log file path from environment or default location.

    Args:
        log_dir: Directory for the daily log file; defaults to the project
                 logs directory.

    Returns:
        Path to log file, or None if file logging is disabled
    """
    log_file = os.environ.get(ENV_LOG_FILE)
    if log_file is not None:
        if log_file.lower() in ("none", "disabled", ""):
            return None
        return Path(log_file)

    return (log_dir or PROJECT_LOG_DIR) / _daily_log_name()


def setup_logging(
    level: Optional[int] = None,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    log_file: Optional[Path] = None,
    enable_file_logging: bool = True,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure logging for the octopus_sync application.

    Sets up a console handler on stderr and, optionally, a file handler
    that always captures DEBUG output.

    Args:
        level: Logging level. If None, determined from environment variables.
        verbose: If True, force DEBUG and use the verbose console format.
        log_dir: Directory for the daily log file.
        log_file: Explicit log file path (overrides log_dir).
        enable_file_logging: If False, only log to the console.
        use_colors: If True, use colored console output (when supported).

    Returns:
        The root logger for octopus_sync

    Example:
        setup_logging(verbose=True)
        setup_logging(log_dir=Path("/var/log/octopus-sync"))
        setup_logging(enable_file_logging=False)
    """
    global _configured_log_dir

    if level is None:
        level = get_log_level_from_env()
    if verbose:
        level = logging.DEBUG

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if enable_file_logging else level)
    logger.handlers.clear()

    # Prevent duplicate messages through the root logger
    logger.propagate = False

    console_format = VERBOSE_FORMAT if verbose else CONSOLE_FORMAT
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_formatter: logging.Formatter
    if use_colors:
        console_formatter = ColoredFormatter(console_format, DATE_FORMAT)
    else:
        console_formatter = logging.Formatter(console_format, DATE_FORMAT)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    _configured_log_dir = log_file.parent if log_file else log_dir

    if enable_file_logging:
        file_path = log_file or get_log_file_path(log_dir)
        if file_path:
            try:
                file_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(file_path, encoding="utf-8")
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(
                    logging.Formatter(VERBOSE_FORMAT, DATE_FORMAT)
                )
                logger.addHandler(file_handler)
                logger.debug(f"Log file: {file_path}")
            except OSError as e:
                logger.warning(f"Could not create log file {file_path}: {e}")
        else:
            logger.setLevel(level)

    return logger


def cleanup_old_logs(log_dir: Optional[Path] = None, keep_count: int = 10) -> int:
    """
    Remove old octopus_sync_*.log files, keeping the most recent ones.

    Args:
        log_dir: Directory containing log files. If None, uses the directory
                 configured by setup_logging() or the project default.
        keep_count: Number of log files to keep. 0 disables cleanup.

    Returns:
        Number of files deleted.
    """
    if keep_count <= 0:
        return 0

    logs_dir = log_dir or _configured_log_dir or PROJECT_LOG_DIR
    if not logs_dir.exists():
        return 0

    old_logs = sorted(
        logs_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )[keep_count:]

    deleted_count = 0
    for old_log in old_logs:
        try:
            old_log.unlink()
            deleted_count += 1
        except OSError as e:
            logging.getLogger(ROOT_LOGGER_NAME).debug(
                f"Could not delete old log {old_log}: {e}"
            )

    return deleted_count


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger inside the octopus_sync hierarchy.

    Args:
        name: Name of the module (typically __name__)

    Returns:
        Logger instance for the module
    """
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"

    return logging.getLogger(name)


__all__ = [
    "setup_logging",
    "get_logger",
    "cleanup_old_logs",
    "ColoredFormatter",
    "get_log_level_from_env",
    "get_log_file_path",
    "PROJECT_LOG_DIR",
    "ROOT_LOGGER_NAME",
    "CONSOLE_FORMAT",
    "VERBOSE_FORMAT",
    "DATE_FORMAT",
]
