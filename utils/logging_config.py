# utils/logging_config.py
import logging
from typing import Optional, Union

_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
_DATEFMT = '%Y-%m-%d %H:%M:%S'


def setup_logging(level: Union[int, str] = logging.WARNING, log_file: Optional[str] = None) -> None:
    """
    Configure the root logger with a console handler and optionally a file handler.

    Args:
        level: Logging level, as a number or a level name such as "DEBUG".
        log_file: Optional path to a file for logging output.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger = logging.getLogger()
    logger.setLevel(level)

    # Clear existing handlers to avoid duplicates
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    ch = logging.StreamHandler()
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    if log_file:
        fh = logging.FileHandler(log_file)
        fh.setFormatter(formatter)
        logger.addHandler(fh)


def configure_from(config) -> None:
    """Apply the log level carried by an EngineConfig."""
    setup_logging(config.level)


def get_logger(name: str) -> logging.Logger:
    """
    Retrieve a module logger. The level is left unset so that it follows
    whatever the application configured on the root logger.
    """
    return logging.getLogger(name)
