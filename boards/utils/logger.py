import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from boards.config import Config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_FILE = 'boards.log'


def _file_handler(log_dir: Path, formatter: logging.Formatter) -> logging.Handler:
    """Shared log file, rotated at midnight and kept for LOG_BACKUP_COUNT days"""
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        log_dir / LOG_FILE,
        when='midnight',
        backupCount=Config.LOG_BACKUP_COUNT,
        encoding='utf-8',
        delay=True,
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Get a module logger writing to stdout and, unless LOG_DIR is empty, to the rotating log file.

    Repeated calls for the same name return the already configured logger.
    Records still propagate to the root logger.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    if level is None:
        level = logging.DEBUG if Config.DEBUG else logging.INFO
    logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if Config.LOG_DIR:
        logger.addHandler(_file_handler(Path(Config.LOG_DIR), formatter))

    return logger
