"""
Data model for cached audio and regeneration results.

VoiceConfig is frozen so it can be hashed, compared and shared between
threads; CacheEntry is rebuilt rather than mutated whenever audio changes.
"""
from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from voice_cache.core.config import Defaults

AUDIO_MIME_TYPE = Defaults.TTS_MIME_TYPE

# camelCase keys accepted from stored message rows and admin payloads
_VOICE_KEY_ALIASES = {
    "voiceId": "voice_id",
    "modelId": "model_id",
    "similarityBoost": "similarity_boost",
    "similarity": "similarity_boost",
    "useSpeakerBoost": "use_speaker_boost",
}


@dataclass(frozen=True)
class VoiceConfig:
    """
    Voice identifier plus the numeric parameters that affect synthesis.

    Every field participates in the cache key, so changing any of them
    invalidates previously generated audio.
    """
    voice_id: str = Defaults.VOICE_ID
    model_id: str = Defaults.VOICE_MODEL_ID
    stability: float = Defaults.VOICE_STABILITY
    similarity_boost: float = Defaults.VOICE_SIMILARITY_BOOST
    style: float = Defaults.VOICE_STYLE
    speed: float = Defaults.VOICE_SPEED
    use_speaker_boost: bool = Defaults.VOICE_USE_SPEAKER_BOOST

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]], base: Optional["VoiceConfig"] = None) -> "VoiceConfig":
        """
        Build a VoiceConfig from a dict, filling gaps from `base`.

        Unknown keys are ignored. Both snake_case and camelCase keys
        are accepted.

        Example:
            >>> VoiceConfig.from_dict({"voiceId": "v1", "stability": 0.7}).voice_id
            'v1'
        """
        values = asdict(base) if base is not None else asdict(cls())
        for raw_key, value in (data or {}).items():
            name = _VOICE_KEY_ALIASES.get(raw_key, raw_key)
            if name in values and value is not None:
                values[name] = value

        return cls(
            voice_id=str(values["voice_id"]),
            model_id=str(values["model_id"]),
            stability=float(values["stability"]),
            similarity_boost=float(values["similarity_boost"]),
            style=float(values["style"]),
            speed=float(values["speed"]),
            use_speaker_boost=bool(values["use_speaker_boost"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def provider_settings(self) -> Dict[str, Any]:
        """Voice settings block in the shape the provider API expects."""
        return {
            "stability": self.stability,
            "similarity_boost": self.similarity_boost,
            "style": self.style,
            "use_speaker_boost": self.use_speaker_boost,
            "speed": self.speed,
        }


@dataclass(frozen=True)
class CacheEntry:
    """
    One cached audio artifact.

    Attributes:
        key: Fingerprint of (text_hash, voice_config); unique in the store.
        owner_id: Owner that caused this entry to be generated.
        audio_bytes: Encoded audio, never modified after creation.
        text_hash: SHA-256 of the spoken text.
        voice_config: Voice settings used for synthesis.
        created_at: Unix timestamp of generation.
        generation_duration_ms: Time spent in the TTS provider.
        mime_type: Audio format; fixed for the whole cache.
    """
    key: str
    owner_id: str
    audio_bytes: bytes
    text_hash: str
    voice_config: VoiceConfig
    created_at: float
    generation_duration_ms: float = 0.0
    mime_type: str = AUDIO_MIME_TYPE

    @property
    def size_bytes(self) -> int:
        return len(self.audio_bytes)

    def metadata(self) -> Dict[str, Any]:
        """Everything except the audio payload, JSON-serialisable."""
        return {
            "key": self.key,
            "owner_id": self.owner_id,
            "text_hash": self.text_hash,
            "voice_config": self.voice_config.to_dict(),
            "created_at": self.created_at,
            "size_bytes": self.size_bytes,
            "generation_duration_ms": self.generation_duration_ms,
            "mime_type": self.mime_type,
        }


@dataclass(frozen=True)
class EntryInfo:
    """Entry metadata without audio, as returned by listings and scans."""
    key: str
    owner_id: str
    text_hash: str
    voice_config: VoiceConfig
    created_at: float
    size_bytes: int
    generation_duration_ms: float
    mime_type: str = AUDIO_MIME_TYPE

    @classmethod
    def from_metadata(cls, meta: Mapping[str, Any]) -> "EntryInfo":
        return cls(
            key=str(meta["key"]),
            owner_id=str(meta["owner_id"]),
            text_hash=str(meta["text_hash"]),
            voice_config=VoiceConfig.from_dict(meta.get("voice_config")),
            created_at=float(meta["created_at"]),
            size_bytes=int(meta["size_bytes"]),
            generation_duration_ms=float(meta.get("generation_duration_ms", 0.0)),
            mime_type=str(meta.get("mime_type", AUDIO_MIME_TYPE)),
        )

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["voice_config"] = self.voice_config.to_dict()
        return d


@dataclass
class RegenerationOutcome:
    """Result of regenerating one owner."""
    owner_id: str
    succeeded: bool
    duration_ms: float
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BulkRegenerationResult:
    """
    Aggregate of a bulk regeneration run.

    `outcomes` keeps input order. When successes are not recorded it
    holds only the failed subset; the counters are always complete.
    """
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    duration_ms: float = 0.0
    outcomes: List[RegenerationOutcome] = field(default_factory=list)

    @property
    def failures(self) -> List[RegenerationOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "duration_ms": self.duration_ms,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


@dataclass(frozen=True)
class CacheStatistics:
    """
    Aggregate view of the store.

    Timestamps and averages are None when there are no entries;
    hit_rate_estimate is None when no lookup counters are available.
    """
    total_entries: int
    total_bytes: int
    owners_with_audio: int
    average_generation_duration_ms: Optional[float]
    oldest_created_at: Optional[float]
    newest_created_at: Optional[float]
    hit_rate_estimate: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class LookupCounters:
    """Hit/miss counters since process start, safe to update from many threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def record_hit(self) -> None:
        with self._lock:
            self._hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self._misses += 1

    def snapshot(self) -> Tuple[int, int]:
        """Return (hits, misses)."""
        with self._lock:
            return self._hits, self._misses

    def hit_rate(self) -> Optional[float]:
        """hits / lookups, or None before the first lookup."""
        hits, misses = self.snapshot()
        total = hits + misses
        if total == 0:
            return None
        return hits / total
