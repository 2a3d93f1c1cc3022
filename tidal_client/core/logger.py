"""
Logging configuration for tidal-client.

The library modules only ever call get_logger(__name__); they never
configure handlers. Applications (and the `tidal` command line tool)
call setup_logging() once at startup:
    - Console: colored level names, written through tqdm so that log
      lines do not break an active download progress bar
    - log_full_{timestamp}.log: complete log of all events (optional)

Usage:
    from tidal_client.core.logger import setup_logging, get_logger

    setup_logging("DEBUG", log_dir=Path("~/.tidal-client/logs").expanduser())
    logger = get_logger(__name__)
    logger.info("Fetching playlist")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

import colorama
from colorama import Fore, Style
from tqdm import tqdm


# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Root of every logger created through get_logger()
LIBRARY_LOGGER_NAME = "tidal_client"

# Third-party loggers that are far too chatty at DEBUG
NOISY_LOGGERS = ("aiohttp", "asyncio", "urllib3", "charset_normalizer")


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that colors the level name for console output.

    Colors:
        - DEBUG: Cyan
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bright Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if self.use_colors:
            color = self.LEVEL_COLORS.get(record.levelno, Fore.WHITE)
            message = f"{color}{record.levelname}{Style.RESET_ALL}: {record.getMessage()}"
        else:
            message = f"{record.levelname}: {record.getMessage()}"

        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        return message


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes through tqdm.write().

    tqdm redraws its progress bar in place with carriage returns; plain
    writes to stderr would tear the bar apart. tqdm.write() prints the
    message above any active bar instead.
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


def setup_logging(
    level: str = "INFO",
    log_dir: Path | None = None,
    use_colors: bool = True
) -> Path | None:
    """
    Configure the logging system for the application.

    Call this ONCE at application startup.

    Args:
        level: Console log level name ("DEBUG", "INFO", ...).
        log_dir: Directory for the full log file. None disables file logging.
        use_colors: Whether to color console level names.

    Returns:
        Path of the log file that was opened, or None.

    Behavior:
        1. Configure root logger level to DEBUG
        2. Replace existing handlers with a tqdm-aware console handler
        3. If log_dir is given, add a timestamped full log file handler
        4. Quiet down third-party loggers
    """
    console_level = logging.getLevelName(level.upper())
    if not isinstance(console_level, int):
        console_level = logging.INFO

    colorama.init()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ColoredConsoleFormatter(use_colors=use_colors))
    root_logger.addHandler(console_handler)

    log_path = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        log_path = log_dir / f"log_full_{timestamp}.log"

        file_handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_path


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.
              This creates a hierarchy like 'tidal_client.tidal.http'.

    Returns:
        logging.Logger: A logger instance configured by setup_logging().

    Note:
        Loggers obtained before setup_logging() is called have no handlers
        of their own; as a library, tidal-client leaves that to the
        embedding application.
    """
    return logging.getLogger(name)


def shutdown_logging() -> None:
    """
    Flush and close all root handlers.

    Typically called in a finally block at application exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except (OSError, ValueError):
            pass
        root_logger.removeHandler(handler)


# Library convention: stay silent unless the application configures logging
logging.getLogger(LIBRARY_LOGGER_NAME).addHandler(logging.NullHandler())
