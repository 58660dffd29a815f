"""
Input validation for cache operations.

Validation runs before any lookup or provider call so bad input fails
fast with InvalidInputError instead of costing a synthesis.

Rules:
    - owner_id: required, at most 200 characters
    - text: required after stripping, at most 5000 characters
    - voice_config: voice_id and model_id non-empty; stability,
      similarity_boost and style in [0, 1]; speed in (0, 4]
"""
from __future__ import annotations

from voice_cache.cache.models import VoiceConfig
from voice_cache.core.errors import InvalidInputError

MAX_OWNER_ID_LENGTH = 200
MAX_TEXT_LENGTH = 5000
MAX_SPEED = 4.0


def validate_owner_id(owner_id: str) -> str:
    if not isinstance(owner_id, str) or not owner_id.strip():
        raise InvalidInputError("owner_id is required")
    if len(owner_id) > MAX_OWNER_ID_LENGTH:
        raise InvalidInputError(
            f"owner_id exceeds maximum length ({len(owner_id)} > {MAX_OWNER_ID_LENGTH})"
        )
    return owner_id


def validate_text(text: str, max_length: int = MAX_TEXT_LENGTH) -> str:
    """
    Validate text to be spoken.

    Returns:
        The stripped text.

    Raises:
        InvalidInputError: If empty or too long.
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidInputError("text is required")

    text = text.strip()
    if len(text) > max_length:
        raise InvalidInputError(
            f"text exceeds maximum length ({len(text)} > {max_length})",
            details={"length": len(text), "max_length": max_length},
        )
    return text


def validate_voice_config(voice_config: VoiceConfig) -> VoiceConfig:
    if not voice_config.voice_id.strip():
        raise InvalidInputError("voice_id is required")
    if not voice_config.model_id.strip():
        raise InvalidInputError("model_id is required")

    for name in ("stability", "similarity_boost", "style"):
        value = getattr(voice_config, name)
        if not 0.0 <= value <= 1.0:
            raise InvalidInputError(f"{name} must be between 0 and 1, got {value}")

    if not 0.0 < voice_config.speed <= MAX_SPEED:
        raise InvalidInputError(f"speed must be in (0, {MAX_SPEED}], got {voice_config.speed}")

    return voice_config
