"""
Tests for logging setup.
"""
import logging
from logging.handlers import RotatingFileHandler

from litdraft.logging_config import QUIET_LOGGERS, setup_logging


def file_handlers():
    return [h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)]


def test_level_and_file_from_environment(tmp_path, monkeypatch):
    log_file = tmp_path / "logs" / "litdraft.log"
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("LOG_FILE", str(log_file))

    try:
        setup_logging()
        logging.getLogger("litdraft.test").debug("written to file")

        assert logging.getLogger().level == logging.DEBUG
        assert [h.baseFilename for h in file_handlers()] == [str(log_file)]
        for handler in file_handlers():
            handler.flush()
        assert "written to file" in log_file.read_text()
    finally:
        setup_logging(level="INFO", log_file="")


def test_empty_log_file_is_console_only():
    setup_logging(level="WARNING", log_file="")

    assert logging.getLogger().level == logging.WARNING
    assert file_handlers() == []
    assert all(logging.getLogger(name).level == logging.WARNING for name in QUIET_LOGGERS)

    setup_logging(level="INFO", log_file="")
