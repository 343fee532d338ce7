import logging
import sys
from datetime import datetime
from pathlib import Path

from lexirank.config import Config

PACKAGE_LOGGER = 'lexirank'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def log_level() -> int:
    """DEBUG overrides LOG_LEVEL."""
    if Config.DEBUG:
        return logging.DEBUG
    level = logging.getLevelName(Config.LOG_LEVEL.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging() -> logging.Logger:
    """
    Attach console and dated file handlers to the package logger.
    
    Runs once; module loggers propagate to it. An empty LOG_DIR keeps
    output on the console only.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if package_logger.handlers:
        return package_logger
    
    level = log_level()
    package_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)
    
    if Config.LOG_DIR:
        log_dir = Path(Config.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(
            log_dir / f'lexirank_{datetime.now().strftime("%Y%m%d")}.log',
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)
    
    return package_logger


def setup_logger(name: str) -> logging.Logger:
    """Get a logger under the package logger, configuring it on first use."""
    configure_logging()
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + '.'):
        name = f'{PACKAGE_LOGGER}.{name}'
    return logging.getLogger(name)
