"""
Logging for LitDraft.

The API and the CLI both call setup_logging once at startup. Level and
file come from LOG_LEVEL / LOG_FILE unless passed explicitly; an empty
LOG_FILE keeps output on the console only.
"""
import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
DEFAULT_LOG_FILE = "logs/litdraft.log"

# Entrez, the LLM SDKs and the DB driver log every request at INFO
QUIET_LOGGERS = ("urllib3", "httpx", "httpcore", "openai", "sqlalchemy.engine")

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    Configure root logging for the process.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL (default: LOG_LEVEL, then INFO)
        log_file: Rotating log file path (default: LOG_FILE, then logs/litdraft.log).
            Pass "" for console only.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if log_file is None:
        log_file = os.getenv("LOG_FILE", DEFAULT_LOG_FILE)

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS))

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging at {level.upper()}" + (f", file: {log_file}" if log_file else ", console only"))


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module (usually __name__)."""
    return logging.getLogger(name)
