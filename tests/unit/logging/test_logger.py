# tests/unit/logging/test_logger.py
"""Tests for logging/logger.py and logging/handlers.py."""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler

import pytest

from passagelink.logging.context import job_context, set_step
from passagelink.logging.handlers import create_rotating_handler, parse_size
from passagelink.logging.logger import ROOT_LOGGER, JsonFormatter, TextFormatter, setup_logging


def _record(msg: str = "hello %s", args: tuple = ("world",), **extra) -> logging.LogRecord:
    record = logging.LogRecord("passagelink.test", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def _reset_root_logger():
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()


class TestJsonFormatter:
    def test_basic_fields(self):
        entry = json.loads(JsonFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "passagelink.test"
        assert entry["message"] == "hello world"
        assert "context" not in entry

    def test_context_and_data(self):
        with job_context("j1", "a", "b"):
            set_step("retrieval")
            entry = json.loads(JsonFormatter().format(_record(data={"passages": 3})))
        assert entry["context"] == {
            "job_id": "j1", "source_corpus_id": "a", "target_corpus_id": "b", "step": "retrieval",
        }
        assert entry["data"] == {"passages": 3}

    def test_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord(
                "passagelink.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )
        entry = json.loads(JsonFormatter().format(record))
        assert "ValueError: bad" in entry["exception"]


class TestTextFormatter:
    def test_context_rendering(self):
        with job_context("j1", "a", "b"):
            set_step("classification")
            line = TextFormatter().format(_record())
        assert "[j1]" in line
        assert "a->b" in line
        assert "(classification)" in line
        assert line.endswith(": hello world")


class TestSetupLogging:
    def test_console_only(self):
        logger = setup_logging(level="debug", log_format="text")
        assert logger.name == ROOT_LOGGER
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, TextFormatter)

    def test_reinit_does_not_duplicate(self):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)

    def test_with_file(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        logger = setup_logging(log_file=log_file, rotation="1KB", retention=2)
        logging.getLogger("passagelink.test").warning("written")
        for handler in logger.handlers:
            handler.flush()
        assert "written" in log_file.read_text(encoding="utf-8")


class TestHandlers:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("10MB", 10 * 1024**2), ("512 kb", 512 * 1024), ("2048", 2048), ("1GB", 1024**3)],
    )
    def test_parse_size(self, value, expected):
        assert parse_size(value) == expected

    def test_parse_size_invalid(self):
        with pytest.raises(ValueError, match="Invalid size format"):
            parse_size("ten megabytes")

    def test_rotating_handler(self, tmp_path):
        handler = create_rotating_handler(tmp_path / "nested" / "app.log", rotation="1KB", retention=3)
        try:
            assert isinstance(handler, RotatingFileHandler)
            assert handler.maxBytes == 1024
            assert handler.backupCount == 3
            assert (tmp_path / "nested").is_dir()
        finally:
            handler.close()
