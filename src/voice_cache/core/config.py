"""
Configuration Management for voice-cache.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (VOICE_CACHE_TTS_PROVIDER, VOICE_CACHE_LOG_LEVEL, etc.)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    store:
      base_dir: ./storage
      memory_max_items: 128

    synthesis:
      timeout_s: 30

    tts:
      provider: elevenlabs
      default_voice:
        voice_id: MXGyTMlsvQgQ4BL0emIa
        stability: 0.6

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import os
import yaml


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    This exception is thrown when a configuration value is outside
    acceptable bounds or of the wrong type.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    All default values are defined here to ensure consistency across
    the codebase. These values are used when no override is provided
    via YAML config or environment variables.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Store Settings (disk-based cache + in-process read tier)
    # ─────────────────────────────────────────────────────────────────────────
    STORE_BASE_DIR = "./storage"        # Directory for blobs, entries, pointers
    STORE_MEMORY_MAX_ITEMS = 128        # Hot blobs kept in memory (0 = off)

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis (TTS provider boundary)
    # ─────────────────────────────────────────────────────────────────────────
    SYNTHESIS_TIMEOUT_S = 30.0          # Bounded wait on the provider call
    SYNTHESIS_MAX_WORKERS = 8           # Threads running provider calls

    # ─────────────────────────────────────────────────────────────────────────
    # Bulk Regeneration
    # ─────────────────────────────────────────────────────────────────────────
    REGENERATION_MAX_WORKERS = 1        # Owners regenerated in parallel
    REGENERATION_RECORD_SUCCESSES = True  # Keep successful outcomes in results

    # ─────────────────────────────────────────────────────────────────────────
    # Maintenance
    # ─────────────────────────────────────────────────────────────────────────
    MAINTENANCE_DEFAULT_DAYS = 30       # Default eviction age

    # ─────────────────────────────────────────────────────────────────────────
    # TTS Provider
    # ─────────────────────────────────────────────────────────────────────────
    TTS_PROVIDER = "elevenlabs"
    TTS_API_KEY_ENV = "ELEVENLABS_API_KEY"
    TTS_BASE_URL = "https://api.elevenlabs.io"
    TTS_MIME_TYPE = "audio/mpeg"

    VOICE_ID = "MXGyTMlsvQgQ4BL0emIa"
    VOICE_MODEL_ID = "eleven_monolingual_v1"
    VOICE_STABILITY = 0.6
    VOICE_SIMILARITY_BOOST = 0.8
    VOICE_STYLE = 0.4
    VOICE_SPEED = 1.0
    VOICE_USE_SPEAKER_BOOST = True

    # ─────────────────────────────────────────────────────────────────────────
    # Message Directory
    # ─────────────────────────────────────────────────────────────────────────
    MESSAGES_PATH = "config/messages.yaml"

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 50     # Characters to show in text preview
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


@dataclass
class StoreConfig:
    """
    Cache store configuration.

    Audio blobs and entry metadata live on disk under base_dir; a small
    LRU keeps recently served blobs in memory.
    """
    base_dir: str = Defaults.STORE_BASE_DIR
    memory_max_items: int = Defaults.STORE_MEMORY_MAX_ITEMS


@dataclass
class SynthesisConfig:
    """Bounds on the external TTS provider call."""
    timeout_s: float = Defaults.SYNTHESIS_TIMEOUT_S
    max_workers: int = Defaults.SYNTHESIS_MAX_WORKERS


@dataclass
class RegenerationConfig:
    """
    Bulk regeneration configuration.

    max_workers > 1 regenerates several owners at once; outcomes are
    still reported in input order.
    """
    max_workers: int = Defaults.REGENERATION_MAX_WORKERS
    record_successes: bool = Defaults.REGENERATION_RECORD_SUCCESSES


@dataclass
class MaintenanceConfig:
    default_days: int = Defaults.MAINTENANCE_DEFAULT_DAYS


@dataclass
class TTSProviderConfig:
    """
    TTS provider configuration.

    default_voice holds the raw voice settings applied to messages that
    do not carry their own.
    """
    provider: str = Defaults.TTS_PROVIDER
    api_key_env: str = Defaults.TTS_API_KEY_ENV
    base_url: str = Defaults.TTS_BASE_URL
    default_voice: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MessagesConfig:
    path: str = Defaults.MESSAGES_PATH


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Request lifecycle, cache status (default)
        3 = VERBOSE: Per-stage timing, detailed flow
        4 = DEBUG: Internal state, full tracing
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class VoiceCacheConfig:
    """
    Validated configuration for VoiceCacheService.

    This is the main configuration object created from Settings.
    It validates all values and provides typed access to configuration.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = VoiceCacheConfig.from_settings(settings)
        print(config.synthesis.timeout_s)  # Typed access
    """
    store: StoreConfig = field(default_factory=StoreConfig)
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)
    regeneration: RegenerationConfig = field(default_factory=RegenerationConfig)
    maintenance: MaintenanceConfig = field(default_factory=MaintenanceConfig)
    tts: TTSProviderConfig = field(default_factory=TTSProviderConfig)
    messages: MessagesConfig = field(default_factory=MessagesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "VoiceCacheConfig":
        """
        Create VoiceCacheConfig from Settings with validation.

        Reads raw configuration dictionary, applies defaults for missing
        values, validates constraints, and returns typed configuration.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated VoiceCacheConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Store configuration
        # ─────────────────────────────────────────────────────────────────────
        store_raw = raw.get("store", {}) or {}
        store = StoreConfig(
            base_dir=str(store_raw.get("base_dir", Defaults.STORE_BASE_DIR)),
            memory_max_items=int(store_raw.get("memory_max_items", Defaults.STORE_MEMORY_MAX_ITEMS)),
        )
        cls._validate_non_negative("store.memory_max_items", store.memory_max_items)
        if not store.base_dir.strip():
            raise ConfigValidationError("store.base_dir must not be empty")

        # ─────────────────────────────────────────────────────────────────────
        # Synthesis configuration
        # ─────────────────────────────────────────────────────────────────────
        synthesis_raw = raw.get("synthesis", {}) or {}
        synthesis = SynthesisConfig(
            timeout_s=float(synthesis_raw.get("timeout_s", Defaults.SYNTHESIS_TIMEOUT_S)),
            max_workers=int(synthesis_raw.get("max_workers", Defaults.SYNTHESIS_MAX_WORKERS)),
        )
        cls._validate_positive("synthesis.timeout_s", synthesis.timeout_s)
        cls._validate_positive("synthesis.max_workers", synthesis.max_workers)

        # ─────────────────────────────────────────────────────────────────────
        # Regeneration configuration
        # ─────────────────────────────────────────────────────────────────────
        regeneration_raw = raw.get("regeneration", {}) or {}
        regeneration = RegenerationConfig(
            max_workers=int(regeneration_raw.get("max_workers", Defaults.REGENERATION_MAX_WORKERS)),
            record_successes=bool(regeneration_raw.get(
                "record_successes", Defaults.REGENERATION_RECORD_SUCCESSES)),
        )
        cls._validate_positive("regeneration.max_workers", regeneration.max_workers)

        # ─────────────────────────────────────────────────────────────────────
        # Maintenance configuration
        # ─────────────────────────────────────────────────────────────────────
        maintenance_raw = raw.get("maintenance", {}) or {}
        maintenance = MaintenanceConfig(
            default_days=int(maintenance_raw.get("default_days", Defaults.MAINTENANCE_DEFAULT_DAYS)),
        )
        cls._validate_non_negative("maintenance.default_days", maintenance.default_days)

        # ─────────────────────────────────────────────────────────────────────
        # TTS provider configuration (with environment variable override)
        # ─────────────────────────────────────────────────────────────────────
        tts_raw = raw.get("tts", {}) or {}
        provider = os.getenv("VOICE_CACHE_TTS_PROVIDER") or tts_raw.get("provider", Defaults.TTS_PROVIDER)
        tts = TTSProviderConfig(
            provider=str(provider).strip().lower(),
            api_key_env=str(tts_raw.get("api_key_env", Defaults.TTS_API_KEY_ENV)),
            base_url=str(tts_raw.get("base_url", Defaults.TTS_BASE_URL)).rstrip("/"),
            default_voice=dict(tts_raw.get("default_voice", {}) or {}),
        )
        if tts.provider not in ("elevenlabs", "stub"):
            raise ConfigValidationError(
                f"tts.provider must be one of elevenlabs, stub, got {tts.provider}"
            )

        messages_raw = raw.get("messages", {}) or {}
        messages = MessagesConfig(
            path=str(messages_raw.get("path", Defaults.MESSAGES_PATH)),
        )

        # ─────────────────────────────────────────────────────────────────────
        # Logging configuration
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            store=store,
            synthesis=synthesis,
            regeneration=regeneration,
            maintenance=maintenance,
            tts=tts,
            messages=messages,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_config() to get the validated VoiceCacheConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def provider(self) -> str:
        """Get the TTS provider name (elevenlabs, stub)."""
        return str(self.raw.get("tts", {}).get("provider", Defaults.TTS_PROVIDER))

    @property
    def store_dir(self) -> str:
        """Get the cache store base directory."""
        return str(self.raw.get("store", {}).get("base_dir", Defaults.STORE_BASE_DIR))

    def get_config(self) -> VoiceCacheConfig:
        """
        Get validated VoiceCacheConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return VoiceCacheConfig.from_settings(self)


def settings_path() -> str:
    """Resolve the settings file path (VOICE_CACHE_SETTINGS or the default)."""
    return os.getenv("VOICE_CACHE_SETTINGS", "config/settings.yaml")


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from a YAML configuration file.

    Environment variable overrides:
        - VOICE_CACHE_STORE_DIR: Override store.base_dir

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
    """
    p = Path(path or settings_path())
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    store_dir = os.getenv("VOICE_CACHE_STORE_DIR")
    if store_dir:
        raw.setdefault("store", {})["base_dir"] = store_dir

    return Settings(raw=raw)


def load_settings_or_default(path: Optional[str] = None) -> Settings:
    """Load settings, falling back to built-in defaults when the file is absent."""
    try:
        return load_settings(path)
    except FileNotFoundError:
        raw: Dict[str, Any] = {}
        store_dir = os.getenv("VOICE_CACHE_STORE_DIR")
        if store_dir:
            raw["store"] = {"base_dir": store_dir}
        return Settings(raw=raw)
