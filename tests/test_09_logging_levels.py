"""Tests for the numeric logging levels and JSONL persistence."""
from __future__ import annotations

import io
import json
import logging
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    from voice_cache.core.logging import configure_logging, set_request_id
    set_request_id("-")
    configure_logging(level=2, force=True)


class TestLogLevelEnum:
    """Test LogLevel enum values."""

    def test_level_enum_values(self):
        from voice_cache.core.logging import LogLevel

        assert LogLevel.MINIMAL == 1
        assert LogLevel.NORMAL == 2
        assert LogLevel.VERBOSE == 3
        assert LogLevel.DEBUG == 4

    def test_level_enum_ordering(self):
        from voice_cache.core.logging import LogLevel

        assert LogLevel.MINIMAL < LogLevel.NORMAL < LogLevel.VERBOSE < LogLevel.DEBUG


class TestLevelCoercion:
    """Test level coercion from various input types."""

    def test_level_from_int(self):
        from voice_cache.core.logging import LogLevel, coerce_level

        assert coerce_level(1) == LogLevel.MINIMAL
        assert coerce_level(4) == LogLevel.DEBUG

    def test_level_from_names(self):
        from voice_cache.core.logging import LogLevel, coerce_level

        assert coerce_level("minimal") == LogLevel.MINIMAL
        assert coerce_level("VERBOSE") == LogLevel.VERBOSE
        assert coerce_level("3") == LogLevel.VERBOSE
        assert coerce_level("TRACE") == LogLevel.DEBUG

    def test_level_from_python_level_names(self):
        from voice_cache.core.logging import LogLevel, coerce_level

        assert coerce_level("INFO") == LogLevel.NORMAL
        assert coerce_level("WARNING") == LogLevel.MINIMAL
        assert coerce_level(logging.WARNING) == LogLevel.MINIMAL
        assert coerce_level(logging.INFO) == LogLevel.NORMAL

    def test_invalid_level_defaults_to_normal(self):
        from voice_cache.core.logging import LogLevel, coerce_level

        assert coerce_level("invalid") == LogLevel.NORMAL
        assert coerce_level(None) == LogLevel.NORMAL


class TestLevelFiltering:
    """Test that log messages are filtered by level."""

    def _capture(self, level):
        from voice_cache.core.logging import configure_logging, debug, error, get_logger, info, verbose

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=level, force=True)
            log = get_logger("test_levels")
            error(log, "error message")
            info(log, "info message")
            verbose(log, "verbose message")
            debug(log, "debug message")
        return captured.getvalue()

    def test_minimal(self):
        output = self._capture(1)
        assert "error message" in output
        assert "info message" not in output

    def test_normal(self):
        output = self._capture(2)
        assert "info message" in output
        assert "verbose message" not in output

    def test_verbose(self):
        output = self._capture(3)
        assert "verbose message" in output
        assert "debug message" not in output

    def test_debug(self):
        output = self._capture(4)
        assert "debug message" in output

    def test_env_level(self, monkeypatch):
        from voice_cache.core.logging import LogLevel, configure_logging, get_level

        monkeypatch.setenv("VOICE_CACHE_LOG_LEVEL", "VERBOSE")
        configure_logging(force=True)
        assert get_level() == LogLevel.VERBOSE


class TestConsoleFields:
    """Test console output carries request id and fields."""

    def test_request_id_and_fields(self):
        from voice_cache.core.logging import configure_logging, get_logger, info, set_request_id

        captured = io.StringIO()
        with patch("sys.stdout", captured):
            configure_logging(level=2, force=True)
            set_request_id("rid-42")
            info(get_logger("test_fields"), "cache_hit", owner_id="msg_42", cache="hit", seconds=0.002)

        line = captured.getvalue()
        assert "(rid-42)" in line
        assert "owner_id=msg_42" in line
        assert "cache=hit" in line
        assert "0.002s" in line


class TestJsonlPersistence:
    """Test JSONL file output."""

    def test_jsonl_file(self, tmp_path, monkeypatch):
        from voice_cache.core.logging import configure_logging, get_logger, info, set_request_id

        monkeypatch.setenv("VOICE_CACHE_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("VOICE_CACHE_JSONL_FILE", "test.jsonl")

        configure_logging(level=2, force=True)
        set_request_id("rid-1")
        info(get_logger("test_jsonl"), "entry_written", event="store", owner_id="msg_42", seconds=0.5)

        for handler in logging.getLogger().handlers:
            handler.flush()

        line = (tmp_path / "test.jsonl").read_text(encoding="utf-8").strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["message"] == "entry_written"
        assert payload["request_id"] == "rid-1"
        assert payload["event"] == "store"
        assert payload["seconds"] == 0.5
        assert payload["extra"]["owner_id"] == "msg_42"
        assert payload["level"] == 2

        for handler in logging.getLogger().handlers:
            handler.close()

    def test_invalid_rotate_env_ignored(self, monkeypatch):
        from voice_cache.core.logging import read_logging_config

        monkeypatch.setenv("VOICE_CACHE_LOG_ROTATE_BYTES", "lots")
        monkeypatch.setenv("VOICE_CACHE_LOG_ROTATE_BACKUP", "3")
        cfg = read_logging_config()
        assert "rotate_max_bytes" not in cfg
        assert cfg["rotate_backup_count"] == 3
