"""Tests for logging color output."""
from __future__ import annotations

import logging
import os
from unittest.mock import MagicMock, patch

from voice_cache.core.logging import colors as colors_module
from voice_cache.core.logging import formatters
from voice_cache.core.logging.colors import Colors, colorize, get_tag_color, supports_color


class TestColorSupport:
    """Test color support detection."""

    def test_no_color_env_disables_colors(self):
        with patch.dict(os.environ, {"VOICE_CACHE_NO_COLOR": "1"}):
            assert supports_color() is False

    def test_no_color_standard_env(self):
        env = {k: v for k, v in os.environ.items() if k != "VOICE_CACHE_NO_COLOR"}
        env["NO_COLOR"] = "1"
        with patch.dict(os.environ, env, clear=True):
            assert supports_color() is False

    def test_tty_enables_colors(self):
        env = {k: v for k, v in os.environ.items() if k not in ("VOICE_CACHE_NO_COLOR", "NO_COLOR")}
        fake_stdout = MagicMock()
        fake_stdout.isatty.return_value = True
        with patch.dict(os.environ, env, clear=True), patch("sys.stdout", fake_stdout):
            assert supports_color() is True


class TestColorize:
    """Test ANSI wrapping."""

    def test_enabled(self):
        result = colorize("test", Colors.RED, enabled=True)
        assert result == f"{Colors.RED}test{Colors.RESET}"

    def test_disabled(self):
        assert colorize("test", Colors.RED, enabled=False) == "test"


class TestTagColors:
    """Test that tags get correct colors."""

    def test_tag_colors(self):
        assert get_tag_color("SUCCESS") == Colors.BRIGHT_GREEN
        assert get_tag_color("FAIL") == Colors.BRIGHT_RED
        assert get_tag_color("ERROR") == Colors.BRIGHT_RED
        assert get_tag_color("WARN") == Colors.BRIGHT_YELLOW
        assert get_tag_color("INFO") == Colors.BRIGHT_CYAN
        assert get_tag_color("DEBUG") == Colors.GRAY

    def test_unknown_tag(self):
        assert get_tag_color("CUSTOM") == Colors.WHITE


class TestConsoleFormatter:
    """Test ColoredConsoleFormatter output."""

    def _record(self, **extra):
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "cache_hit", None, None)
        record.tag = "INFO"
        record.request_id = "-"
        for k, v in extra.items():
            setattr(record, k, v)
        return record

    def test_cache_field_highlighted(self):
        original = colors_module.USE_COLORS
        try:
            colors_module.USE_COLORS = True
            line = formatters.ColoredConsoleFormatter().format(
                self._record(extra_data={"cache": "hit"})
            )
            assert f"{Colors.GREEN}cache=hit{Colors.RESET}" in line
        finally:
            colors_module.USE_COLORS = original

    def test_plain_when_disabled(self):
        original = colors_module.USE_COLORS
        try:
            colors_module.USE_COLORS = False
            line = formatters.ColoredConsoleFormatter().format(
                self._record(seconds=1.5, extra_data={"failed": 3})
            )
            assert "\033[" not in line
            assert "1.500s" in line
            assert "failed=3" in line
        finally:
            colors_module.USE_COLORS = original
