"""
Logging setup for the bridge.

Configures the package root logger with a console handler and, when a log
directory is configured, a daily log file. Every handler shortens Google
tokens found in messages, so an API key pasted into an error message never
reaches a terminal or a file in full.
"""

import logging
import os
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from gcontact_bridge.utils.anonymize import anonymize_key

# Root logger name of the package
LOGGER_NAME = "gcontact_bridge"

CONSOLE_FORMAT = "%(levelname)s: %(message)s"

VERBOSE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
)

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Fallback when the settings do not name a level
ENV_LOG_LEVEL = "GCONTACT_BRIDGE_LOG_LEVEL"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Access tokens ("ya29."), optionally joined with a refresh token into an
# API key, and bare refresh tokens ("1//"). Tokens already shortened to
# "...<tail>" are left alone.
TOKEN_PATTERN = re.compile(r"(?<![\w.-])(?:ya29\.[\w.-]+(?::[\w./-]+)?|1//[\w./-]+)")


class TokenRedactingFilter(logging.Filter):
    """
    Replace Google tokens in log messages with their anonymize_key() form.

    Logger filters do not see records propagated from child loggers, so
    this one is installed on each handler.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        # Records pass through every handler, redact only once
        if getattr(record, "tokens_redacted", False):
            return True
        message = record.getMessage()
        redacted = TOKEN_PATTERN.sub(
            lambda match: anonymize_key(match.group(0)), message
        )
        if redacted != message:
            record.msg = redacted
            record.args = None
        record.tokens_redacted = True
        return True


def resolve_log_level(
    level: Union[int, str, None] = None, verbose: bool = False
) -> int:
    """
    Pick the console log level.

    Verbose mode wins, then the explicit level (usually Settings.log_level),
    then GCONTACT_BRIDGE_LOG_LEVEL. Unknown names fall back to INFO.
    """
    if verbose:
        return logging.DEBUG
    if isinstance(level, int):
        return level
    name = level or os.environ.get(ENV_LOG_LEVEL) or "INFO"
    return LOG_LEVELS.get(name.upper(), logging.INFO)


def setup_logging(
    level: Union[int, str, None] = None,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure logging for the gcontact_bridge package.

    Args:
        level: Level number or name. If None, read from the environment.
        verbose: If True, use the detailed format and DEBUG level.
        log_dir: Directory for daily log files. No file is written if None.
                 The file always receives DEBUG records.

    Returns:
        The package root logger

    Example:
        setup_logging(level=settings.log_level, log_dir=settings.log_dir)
    """
    level = resolve_log_level(level, verbose)
    redact = TokenRedactingFilter()

    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter(VERBOSE_FORMAT if verbose else CONSOLE_FORMAT, DATE_FORMAT)
    )
    console_handler.addFilter(redact)
    logger.addHandler(console_handler)

    if log_dir is None:
        logger.setLevel(level)
        return logger

    logger.setLevel(logging.DEBUG)
    file_path = log_dir / f"gcontact_bridge_{datetime.now().strftime('%Y%m%d')}.log"
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(file_path, encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not create log file {file_path}: {e}")
        return logger

    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(VERBOSE_FORMAT, DATE_FORMAT))
    file_handler.addFilter(redact)
    logger.addHandler(file_handler)
    logger.debug(f"Log file: {file_path}")

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger inside the gcontact_bridge hierarchy.

    Args:
        name: Name of the module (typically __name__)
    """
    if not name.startswith(LOGGER_NAME):
        name = f"{LOGGER_NAME}.{name}"

    return logging.getLogger(name)


__all__ = [
    "setup_logging",
    "get_logger",
    "resolve_log_level",
    "TokenRedactingFilter",
    "TOKEN_PATTERN",
    "LOG_LEVELS",
    "LOGGER_NAME",
]
