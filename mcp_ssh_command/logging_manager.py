"""Logging setup for the SSH command server."""
import logging
import os
from pathlib import Path
from typing import Optional

from .config import DEFAULT_LOG_DIR, DEFAULT_LOG_LEVEL

LOGGER_NAME = 'ssh_command'
LOG_FILE_NAME = 'mcp_ssh_command.log'
LOG_FORMAT = '%(asctime)s - [%(threadName)s] - %(name)s - %(levelname)s - %(message)s'


def setup_logging(log_dir: Optional[str] = None, level: str = DEFAULT_LOG_LEVEL) -> logging.Logger:
    """Configure the package logger to write to a file only.

    stdout carries the MCP stdio stream, so no StreamHandler is ever attached.
    Calling this again reuses the existing handler unless the log dir changed.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.DEBUG))
    logger.propagate = False  # Don't propagate to root logger

    log_path = Path(log_dir or DEFAULT_LOG_DIR)
    log_path.mkdir(exist_ok=True, parents=True)
    log_file = str(log_path / LOG_FILE_NAME)

    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            if handler.baseFilename == os.path.abspath(log_file):
                return logger
            logger.removeHandler(handler)
            handler.close()

    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(file_handler)
    return logger
