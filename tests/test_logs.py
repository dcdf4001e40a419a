"""Tests for gutlog.logs module."""

from __future__ import annotations

import logging
import stat
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from gutlog.logs import setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Remove handlers added by setup_logging after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def file_handlers(log_file: Path) -> list[RotatingFileHandler]:
    return [
        h
        for h in logging.getLogger().handlers
        if isinstance(h, RotatingFileHandler) and Path(h.baseFilename) == log_file
    ]


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_creates_private_directory(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("GUTLOG_DEBUG", raising=False)
        log_dir = tmp_path / "logs"

        logger = setup_logging(log_dir)

        assert logger.name == "gutlog"
        assert log_dir.is_dir()
        assert stat.S_IMODE(log_dir.stat().st_mode) == 0o700
        assert logging.getLogger().level == logging.INFO

        handler = file_handlers(log_dir / "gutlog.log")[0]
        assert handler.maxBytes == 5 * 1024 * 1024
        assert handler.backupCount == 3

    def test_debug_level_from_env(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("GUTLOG_DEBUG", "1")
        setup_logging(tmp_path)
        assert logging.getLogger().level == logging.DEBUG

    def test_repeated_calls_add_one_handler(self, tmp_path: Path):
        setup_logging(tmp_path)
        setup_logging(tmp_path)

        assert len(file_handlers(tmp_path / "gutlog.log")) == 1

    def test_messages_written(self, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("GUTLOG_DEBUG", raising=False)
        setup_logging(tmp_path)

        logging.getLogger("gutlog.core.nlu.rules").info("parsed message")
        for handler in file_handlers(tmp_path / "gutlog.log"):
            handler.flush()

        content = (tmp_path / "gutlog.log").read_text(encoding="utf-8")
        assert "gutlog.core.nlu.rules - INFO - parsed message" in content
