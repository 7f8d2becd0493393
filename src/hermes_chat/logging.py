"""Logging configuration for hermes-chat.

Every component logs under the ``hermes_chat`` namespace. An entry point
calls setup_logging() once; handlers are attached to the package logger so
component loggers obtained via get_logger() all end up in the same file.
"""

import logging
import sys
from pathlib import Path

DEFAULT_LOG_DIR = Path.home() / ".hermes-chat" / "logs"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

PACKAGE_LOGGER = "hermes_chat"


def setup_logging(
    name: str,
    log_dir: Path | None = None,
    level: int = logging.INFO,
    console_level: int | None = logging.WARNING,
) -> logging.Logger:
    """Configure logging for a hermes-chat entry point.

    Log files are written to ~/.hermes-chat/logs/<name>.log. The console
    handler defaults to WARNING so that interactive sessions are not
    drowned in INFO chatter; pass None to disable it.

    Args:
        name: Entry point name (used for log filename)
        log_dir: Directory for log files (defaults to ~/.hermes-chat/logs/)
        level: Level for the package logger and its file handler
        console_level: Level for the stderr handler, or None for no console

    Returns:
        The entry point's logger
    """
    if log_dir is None:
        log_dir = DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)

    # Idempotent: a second entry point in the same process reuses handlers
    if not package_logger.handlers:
        formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

        file_handler = logging.FileHandler(log_dir / f"{name}.log", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

        if console_level is not None:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(console_level)
            console_handler.setFormatter(formatter)
            package_logger.addHandler(console_handler)

    return get_logger(name)


def get_logger(name: str) -> logging.Logger:
    """Get a component logger (prefixed with 'hermes_chat.')."""
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")
