"""
Tests for configuration validation and defaults.

Tests cover:
- VoiceCacheConfig.from_settings() - all sections
- Defaults class values
- ConfigValidationError on invalid values
- String log level coercion ("DEBUG" -> 4)
- Provider environment override
- load_settings() file handling and VOICE_CACHE_STORE_DIR
"""
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from voice_cache.core.config import (
    ConfigValidationError,
    Defaults,
    Settings,
    VoiceCacheConfig,
    load_settings,
    load_settings_or_default,
    settings_path,
)


class TestDefaults:
    """Tests for Defaults class values."""

    def test_store_defaults(self):
        assert Defaults.STORE_BASE_DIR == "./storage"
        assert Defaults.STORE_MEMORY_MAX_ITEMS == 128

    def test_synthesis_defaults(self):
        assert Defaults.SYNTHESIS_TIMEOUT_S == 30.0
        assert Defaults.SYNTHESIS_MAX_WORKERS == 8

    def test_regeneration_defaults(self):
        """Bulk regeneration is sequential by default."""
        assert Defaults.REGENERATION_MAX_WORKERS == 1
        assert Defaults.REGENERATION_RECORD_SUCCESSES is True

    def test_provider_defaults(self):
        assert Defaults.TTS_PROVIDER == "elevenlabs"
        assert Defaults.TTS_API_KEY_ENV == "ELEVENLABS_API_KEY"
        assert Defaults.TTS_MIME_TYPE == "audio/mpeg"

    def test_logging_defaults(self):
        assert Defaults.LOGGING_LEVEL == 2


class TestVoiceCacheConfigFromSettings:
    """Tests for VoiceCacheConfig.from_settings()."""

    @pytest.fixture(autouse=True)
    def no_provider_env(self, monkeypatch):
        monkeypatch.delenv("VOICE_CACHE_TTS_PROVIDER", raising=False)

    def test_empty_raw_uses_defaults(self):
        config = VoiceCacheConfig.from_settings(Settings(raw={}))

        assert config.store.base_dir == Defaults.STORE_BASE_DIR
        assert config.store.memory_max_items == Defaults.STORE_MEMORY_MAX_ITEMS
        assert config.synthesis.timeout_s == Defaults.SYNTHESIS_TIMEOUT_S
        assert config.regeneration.max_workers == Defaults.REGENERATION_MAX_WORKERS
        assert config.maintenance.default_days == Defaults.MAINTENANCE_DEFAULT_DAYS
        assert config.tts.provider == Defaults.TTS_PROVIDER
        assert config.tts.default_voice == {}
        assert config.messages.path == Defaults.MESSAGES_PATH
        assert config.logging.level == Defaults.LOGGING_LEVEL

    def test_sections_parsed(self):
        settings = Settings(raw={
            "store": {"base_dir": "/tmp/vc", "memory_max_items": 0},
            "synthesis": {"timeout_s": 5, "max_workers": 2},
            "regeneration": {"max_workers": 4, "record_successes": False},
            "maintenance": {"default_days": 7},
            "tts": {
                "provider": "STUB",
                "base_url": "http://localhost:9000/",
                "default_voice": {"voice_id": "v9"},
            },
            "messages": {"path": "msgs.yaml"},
        })
        config = VoiceCacheConfig.from_settings(settings)

        assert config.store.base_dir == "/tmp/vc"
        assert config.store.memory_max_items == 0
        assert config.synthesis.timeout_s == 5.0
        assert config.synthesis.max_workers == 2
        assert config.regeneration.max_workers == 4
        assert config.regeneration.record_successes is False
        assert config.maintenance.default_days == 7
        assert config.tts.provider == "stub"
        assert config.tts.base_url == "http://localhost:9000"
        assert config.tts.default_voice == {"voice_id": "v9"}
        assert config.messages.path == "msgs.yaml"

    def test_null_sections_use_defaults(self):
        """A section present but empty in YAML parses as None."""
        config = VoiceCacheConfig.from_settings(Settings(raw={"store": None, "tts": None}))
        assert config.store.base_dir == Defaults.STORE_BASE_DIR
        assert config.tts.provider == Defaults.TTS_PROVIDER

    def test_provider_env_override(self):
        with patch.dict(os.environ, {"VOICE_CACHE_TTS_PROVIDER": "stub"}):
            config = VoiceCacheConfig.from_settings(Settings(raw={"tts": {"provider": "elevenlabs"}}))
        assert config.tts.provider == "stub"

    def test_settings_get_config(self):
        settings = Settings(raw={"store": {"base_dir": "/data"}})
        assert settings.store_dir == "/data"
        assert settings.get_config().store.base_dir == "/data"


class TestLogLevelCoercion:
    """Tests for string log level coercion."""

    @pytest.mark.parametrize("raw, expected", [
        ("MINIMAL", 1), ("NORMAL", 2), ("INFO", 2), ("VERBOSE", 3),
        ("DEBUG", 4), ("TRACE", 4), ("debug", 4), ("3", 3),
    ])
    def test_string_levels(self, raw, expected):
        config = VoiceCacheConfig.from_settings(Settings(raw={"logging": {"level": raw}}))
        assert config.logging.level == expected

    def test_unknown_level_uses_default(self):
        config = VoiceCacheConfig.from_settings(Settings(raw={"logging": {"level": "LOUD"}}))
        assert config.logging.level == Defaults.LOGGING_LEVEL


class TestConfigValidation:
    """Tests for configuration validation."""

    def test_negative_memory_items_raises(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            VoiceCacheConfig.from_settings(Settings(raw={"store": {"memory_max_items": -1}}))
        assert "store.memory_max_items" in str(exc_info.value)

    def test_zero_timeout_raises(self):
        with pytest.raises(ConfigValidationError):
            VoiceCacheConfig.from_settings(Settings(raw={"synthesis": {"timeout_s": 0}}))

    def test_zero_regeneration_workers_raises(self):
        with pytest.raises(ConfigValidationError):
            VoiceCacheConfig.from_settings(Settings(raw={"regeneration": {"max_workers": 0}}))

    def test_negative_default_days_raises(self):
        with pytest.raises(ConfigValidationError):
            VoiceCacheConfig.from_settings(Settings(raw={"maintenance": {"default_days": -1}}))

    def test_unknown_provider_raises(self, monkeypatch):
        monkeypatch.delenv("VOICE_CACHE_TTS_PROVIDER", raising=False)
        with pytest.raises(ConfigValidationError) as exc_info:
            VoiceCacheConfig.from_settings(Settings(raw={"tts": {"provider": "polly"}}))
        assert "tts.provider" in str(exc_info.value)

    def test_log_level_out_of_range_raises(self):
        with pytest.raises(ConfigValidationError):
            VoiceCacheConfig.from_settings(Settings(raw={"logging": {"level": 7}}))

    def test_blank_base_dir_raises(self):
        with pytest.raises(ConfigValidationError):
            VoiceCacheConfig.from_settings(Settings(raw={"store": {"base_dir": "  "}}))


class TestLoadSettings:
    """Tests for settings file loading."""

    def test_missing_file_raises(self):
        with pytest.raises(FileNotFoundError):
            load_settings("/nonexistent/settings.yaml")

    def test_missing_file_falls_back_to_defaults(self, monkeypatch):
        monkeypatch.delenv("VOICE_CACHE_STORE_DIR", raising=False)
        settings = load_settings_or_default("/nonexistent/settings.yaml")
        assert settings.raw == {}

    def test_loads_yaml(self, monkeypatch):
        monkeypatch.delenv("VOICE_CACHE_STORE_DIR", raising=False)
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "settings.yaml"
            path.write_text("store:\n  base_dir: /srv/audio\n", encoding="utf-8")
            settings = load_settings(str(path))
        assert settings.store_dir == "/srv/audio"

    def test_empty_yaml_is_empty_settings(self, monkeypatch):
        monkeypatch.delenv("VOICE_CACHE_STORE_DIR", raising=False)
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "settings.yaml"
            path.write_text("", encoding="utf-8")
            assert load_settings(str(path)).raw == {}

    def test_store_dir_env_override(self, monkeypatch):
        monkeypatch.setenv("VOICE_CACHE_STORE_DIR", "/override")
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "settings.yaml"
            path.write_text("store:\n  base_dir: /srv/audio\n", encoding="utf-8")
            assert load_settings(str(path)).store_dir == "/override"
        assert load_settings_or_default("/nonexistent.yaml").store_dir == "/override"

    def test_settings_path_env(self, monkeypatch):
        monkeypatch.setenv("VOICE_CACHE_SETTINGS", "/etc/voice-cache.yaml")
        assert settings_path() == "/etc/voice-cache.yaml"
        monkeypatch.delenv("VOICE_CACHE_SETTINGS")
        assert settings_path() == "config/settings.yaml"
