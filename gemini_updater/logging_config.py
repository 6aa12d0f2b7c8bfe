"""
Centralized logging configuration for the Gemini CLI updater.

Console output goes to stderr so the wrapped tool keeps stdout to itself.
File output is rotated once it grows past LOG_MAX_BYTES.
"""

import logging
import logging.handlers
import os
import platform
import sys
from pathlib import Path
from typing import Optional


LOGGER_NAME = "gemini_updater"
LOG_FILE_NAME = "updater.log"
LOG_MAX_BYTES = 1024 * 1024
LOG_BACKUP_COUNT = 1

# Global logger instance
_logger: Optional[logging.Logger] = None


def setup_logging(
    level: str = "ERROR",
    log_file: Optional[str] = None,
    verbose: bool = False,
    quiet: bool = False,
    propagate: bool = False,
) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output (rotated)
        verbose: Enable verbose (DEBUG) console output
        quiet: Suppress console output (file only)
        propagate: Allow log propagation (useful for testing)

    Returns:
        Configured logger instance
    """
    global _logger

    if verbose:
        console_level = "DEBUG"
    else:
        console_level = level.upper()

    logger = logging.getLogger(LOGGER_NAME)
    # The logger itself passes everything; handlers filter
    logger.setLevel(logging.DEBUG)

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    if not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, console_level))
        console_formatter = ColoredFormatter(
            "%(levelname_colored)s %(message)s",
            use_colors=sys.stderr.isatty()
        )
        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding='utf-8',
        )
        file_handler.setLevel(logging.DEBUG)  # Always log everything to file
        file_formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    logger.propagate = propagate

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """
    Get the configured logger instance.

    If logging hasn't been set up, initializes with defaults.
    """
    global _logger
    if _logger is None:
        _logger = setup_logging()
    return _logger


def get_log_path(home: Path) -> Path:
    """Location of the log file inside the updater data directory."""
    return home / LOG_FILE_NAME


def get_recent_logs(log_file: Path, lines: int = 50) -> list[str]:
    """Last lines of the log file, oldest first. Empty if there is no log."""
    if lines < 1:
        return []
    try:
        with open(log_file, "r", encoding="utf-8", errors="replace") as f:
            content = f.read().strip()
    except FileNotFoundError:
        return []
    except OSError as e:
        get_logger().error(f"Could not read log file {log_file}: {e}")
        return []
    if not content:
        return []
    return content.split("\n")[-lines:]


def clear_log(log_file: Path) -> list[Path]:
    """
    Delete the log file and its rotated backups.

    Handlers writing to the file should be closed first (setup_logging(quiet=True)).

    Returns:
        Paths that were removed
    """
    removed = []
    candidates = [log_file] + [
        log_file.with_name(f"{log_file.name}.{i}") for i in range(1, LOG_BACKUP_COUNT + 1)
    ]
    for path in candidates:
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            get_logger().error(f"Could not clear log file {path}: {e}")
            continue
        removed.append(path)
    return removed


def log_system_info(logger: Optional[logging.Logger] = None) -> None:
    """Log platform details at DEBUG level for bug reports."""
    logger = logger or get_logger()
    path_env = os.environ.get("PATH", "")
    logger.debug(
        "System information: platform=%s arch=%s python=%s home=%s path=%s...",
        sys.platform,
        platform.machine(),
        platform.python_version(),
        Path.home(),
        path_env[:100],
    )


class ColoredFormatter(logging.Formatter):
    """
    Formatter with colored output for different log levels.
    """

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[90m',      # Gray
        'INFO': '\033[34m',       # Blue
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[1;31m', # Bold Red
    }
    RESET = '\033[0m'

    def __init__(self, fmt: str, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        label = f"[{record.levelname}]"
        if self.use_colors:
            color = self.COLORS.get(record.levelname, '')
            record.levelname_colored = f"{color}{label}{self.RESET}"
        else:
            record.levelname_colored = label

        return super().format(record)
