import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

try:
    from tradebook.config.settings import settings
except Exception:
    settings = None

ROOT_LOGGER_NAME = "tradebook"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
# 5MB per file, 2 backups
LOG_FILE_MAX_BYTES = 1024 * 1024 * 5
LOG_FILE_BACKUPS = 2


def _resolve_level(level_name: Optional[str]) -> int:
    return getattr(logging, (level_name or "INFO").upper(), logging.INFO)


def setup_logging(
    name: str = ROOT_LOGGER_NAME,
    level_name: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the application logger once.

    Always logs to stdout; when a log file is configured (LOG_FILE) a
    rotating file handler is attached as well. Child loggers from
    get_logger() propagate here, so only this logger carries handlers.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    if settings is not None:
        level_name = level_name or settings.LOG_LEVEL
        log_file = log_file or settings.LOG_FILE
    level = _resolve_level(level_name)
    logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(component: str) -> logging.Logger:
    """Child logger, e.g. get_logger("notion") -> "tradebook.notion"."""
    setup_logging()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")


logger = setup_logging()
