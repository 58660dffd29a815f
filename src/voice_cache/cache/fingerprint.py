"""
Cache key derivation.

A key is SHA-256 over a version tag, the SHA-256 of the stripped text,
and the canonical JSON of the voice config:

    key = sha256("v1" | sha256(text.strip()) | json(voice_config, sort_keys))

Floats are passed through float() before serialisation so 1 and 1.0
produce the same key. Bumping FINGERPRINT_VERSION invalidates every
existing entry.
"""
from __future__ import annotations

import hashlib
import json

from voice_cache.cache.models import VoiceConfig

FINGERPRINT_VERSION = "v1"


def hash_bytes(data: bytes) -> str:
    """SHA-256 of raw bytes as a 64-char hex string."""
    return hashlib.sha256(data).hexdigest()


def text_hash(text: str) -> str:
    """Hash of the exact spoken text, surrounding whitespace ignored."""
    return hash_bytes(text.strip().encode("utf-8"))


def canonical_voice_json(voice_config: VoiceConfig) -> str:
    data = voice_config.to_dict()
    for name in ("stability", "similarity_boost", "style", "speed"):
        data[name] = float(data[name])
    data["use_speaker_boost"] = bool(data["use_speaker_boost"])
    return json.dumps(data, sort_keys=True, ensure_ascii=True, separators=(",", ":"))


def fingerprint_from_hash(text_digest: str, voice_config: VoiceConfig) -> str:
    h = hashlib.sha256()
    h.update(FINGERPRINT_VERSION.encode("ascii"))
    h.update(b"|")
    h.update(text_digest.encode("ascii"))
    h.update(b"|")
    h.update(canonical_voice_json(voice_config).encode("utf-8"))
    return h.hexdigest()


def fingerprint(text: str, voice_config: VoiceConfig) -> str:
    """
    Derive the cache key for (text, voice_config).

    Args:
        text: Text to be spoken.
        voice_config: Voice settings used for synthesis.

    Returns:
        64-character lowercase hex key.
    """
    return fingerprint_from_hash(text_hash(text), voice_config)
