"""
Logging setup for the Kegelkladde.

Every module logger writes to stdout and to one file per day under
Config.LOG_DIR. discord.py and SQLAlchemy only log warnings unless DEBUG is on.
"""

import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional, Union

from kladde.config import Config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LIBRARY_LOGGERS = ('discord', 'discord.http', 'sqlalchemy.engine', 'aiosqlite')


def log_file_path(log_dir: Union[str, Path, None] = None, day: Optional[date] = None) -> Path:
    """Daily log file, e.g. ``logs/kladde_20260220.log``"""
    day = day or date.today()
    return Path(log_dir or Config.LOG_DIR) / f"kladde_{day.strftime('%Y%m%d')}.log"


def setup_logger(name: str, log_dir: Union[str, Path, None] = None) -> logging.Logger:
    """Setup a logger with console and daily file output; repeated calls return it unchanged"""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = logging.DEBUG if Config.DEBUG else logging.INFO
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    path = log_file_path(log_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger


def quiet_library_loggers(debug: Optional[bool] = None):
    """Raise discord.py / SQLAlchemy loggers to WARNING outside of debug mode"""
    debug = Config.DEBUG if debug is None else debug
    level = logging.DEBUG if debug else logging.WARNING
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(level)
