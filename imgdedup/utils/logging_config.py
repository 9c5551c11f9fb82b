# utils/logging_config.py

import logging
import logging.handlers
from pathlib import Path
from typing import Optional
import json
from datetime import datetime

CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - %(funcName)s:%(lineno)d - %(message)s'

_HANDLER_TAG = '_imgdedup_handler'


def setup_logging(level: str = "INFO",
                  log_dir: Optional[str] = None,
                  name: str = "imgdedup") -> logging.Logger:
    """
    Configure the package logger.

    Console output goes to stderr at `level`. With a `log_dir`, a rotating
    plain-text log (DEBUG) and a rotating JSON-lines log (INFO) are added.
    Calling this again replaces the handlers it installed earlier.
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            logger.removeHandler(handler)
            handler.close()

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    _add(logger, console_handler)

    if log_dir:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)

        # File handler (rotating)
        file_handler = logging.handlers.RotatingFileHandler(
            directory / f"{name}.log",
            maxBytes=10*1024*1024,  # 10 MB
            backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        _add(logger, file_handler)

        # JSON handler for structured logs
        json_handler = logging.handlers.RotatingFileHandler(
            directory / f"{name}_structured.json",
            maxBytes=10*1024*1024,
            backupCount=5
        )
        json_handler.setLevel(logging.INFO)
        json_handler.setFormatter(JSONFormatter())
        _add(logger, json_handler)

    return logger


def _add(logger: logging.Logger, handler: logging.Handler):
    setattr(handler, _HANDLER_TAG, True)
    logger.addHandler(handler)


class JSONFormatter(logging.Formatter):
    """Format logs as JSON"""

    def format(self, record):
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
            'thread': record.threadName
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)
