"""Logging configuration for SimpleFTP.

All modules log under the "simpleftp" logger. Handlers installed here
scrub FTP credentials (PASS commands, password fields, user:password
URLs) before anything is written.
"""

import logging
import re
import sys
from pathlib import Path
from typing import List, Optional

from simpleftp.config.paths import get_log_file_path
from simpleftp.config.settings import AppSettings


LOGGER_NAME = "simpleftp"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# (pattern, replacement) pairs applied to every formatted record
CREDENTIAL_PATTERNS = [
    # ftplib echoes the login exchange as "*cmd* 'PASS secret'"
    (re.compile(r'(\bPASS\s+)\S+'), r'\1[REDACTED]'),
    (re.compile(r'(passw(?:or)?d["\s:=]+)[^\s,}\]]+', re.IGNORECASE), r'\1[REDACTED]'),
    (re.compile(r'ftp://[^:/@\s]+:[^@\s]+@'), 'ftp://[REDACTED]@'),
]


def redact_credentials(text: str) -> str:
    """Replace every credential found in text with [REDACTED]."""
    for pattern, replacement in CREDENTIAL_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class PIIRedactingFormatter(logging.Formatter):
    """Formatter that redacts credentials, tracebacks included."""

    def format(self, record: logging.LogRecord) -> str:
        return redact_credentials(super().format(record))


def _remove_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    console: bool = True
) -> logging.Logger:
    """
    Configure the package logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Logging level (default INFO)
        log_file: Optional file to append log output to
        console: Whether to log to stdout (default True)

    Returns:
        The "simpleftp" logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    _remove_handlers(logger)

    formatter = PIIRedactingFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: List[logging.Handler] = []

    if console:
        handlers.append(logging.StreamHandler(sys.stdout))

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def configure_from_settings(
    settings: AppSettings,
    log_file: Optional[Path] = None
) -> logging.Logger:
    """
    Configure logging from application settings.

    Debug mode logs at DEBUG level and also echoes to the console;
    otherwise only INFO and above go to the log file.

    Args:
        settings: Application settings
        log_file: Log file (defaults to the per-user log file)
    """
    level = logging.DEBUG if settings.debug else logging.INFO
    return setup_logging(
        level=level,
        log_file=log_file or get_log_file_path(),
        console=settings.debug
    )


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """Get a logger, the package logger by default."""
    return logging.getLogger(name)
