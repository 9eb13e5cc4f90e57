"""Logging configuration for the clusterup package."""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

NOISY_LOGGERS = ('paramiko', 'urllib3', 'kubernetes')


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    max_size_mb: int = 100,
    backup_count: int = 5,
    debug: bool = False,
) -> logging.Logger:
    """
    Configure the ``clusterup`` logger hierarchy.

    Args:
        level: Log level name used unless ``debug`` is set
        log_file: Optional path of a rotating log file
        max_size_mb: Size at which the log file is rotated
        backup_count: Number of rotated files to keep
        debug: Force DEBUG level and let third-party libraries log too

    Returns:
        The configured ``clusterup`` logger
    """
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger("clusterup")
    logger.setLevel(log_level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file).expanduser().absolute()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=path,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Disable debug logging for noisy libraries
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)

    return logger
