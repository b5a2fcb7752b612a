"""
Parley - Logging setup.

Configures the ``parley`` logger hierarchy from the ``[logging]`` section of
the configuration: a rotating file handler under the data directory and an
optional console handler. Library modules only ever call
``logging.getLogger(__name__)``.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import Config
from .constants import LOG_BACKUP_COUNT, LOG_DATE_FORMAT, LOG_FILENAME, LOG_FORMAT, LOG_MAX_BYTES, LOGS_DIR


def setup_logging(config: Config, log_dir: Optional[Path] = None) -> logging.Logger:
    """
    Attach handlers to the package logger.

    Args:
        config: Loaded configuration
        log_dir: Directory for the log file (defaults to <data dir>/logs)

    Returns:
        The configured ``parley`` logger
    """
    logger = logging.getLogger("parley")
    level_name = str(config.get("logging", "level", "INFO")).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if config.get("logging", "file_logging", True):
        if log_dir is None:
            log_dir = config.data_dir / LOGS_DIR
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / LOG_FILENAME,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if config.get("logging", "console_logging", False):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    return logger
