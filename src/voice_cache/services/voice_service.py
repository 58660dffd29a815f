"""
VoiceCacheService - composition root for the cache engine.

Wires store, coordinator, regeneration engine, maintenance and the
message directory from one validated config. There is no module-level
instance: the HTTP app holds one on app.state, the CLI builds its own,
and tests construct as many as they like. close() ends its lifetime.

Example:
    >>> from voice_cache.core.config import VoiceCacheConfig
    >>> from voice_cache.services import VoiceCacheService
    >>> from voice_cache.tts import StubTTSClient
    >>>
    >>> with VoiceCacheService(VoiceCacheConfig(), client=StubTTSClient()) as svc:
    ...     audio = svc.get_or_generate("msg_42", "Welcome back", svc.default_voice)
"""
from __future__ import annotations

import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from voice_cache.cache.fingerprint import fingerprint
from voice_cache.cache.maintenance import CacheMaintenance
from voice_cache.cache.models import (
    BulkRegenerationResult,
    CacheStatistics,
    EntryInfo,
    LookupCounters,
    RegenerationOutcome,
    VoiceConfig,
)
from voice_cache.cache.store import CacheStore
from voice_cache.core.config import Settings, VoiceCacheConfig
from voice_cache.core.errors import OwnerNotFoundError
from voice_cache.core.logging import get_logger, info
from voice_cache.core.metrics import metrics
from voice_cache.services.coordinator import RequestCoordinator
from voice_cache.services.directory import MessageDirectory, YamlMessageDirectory
from voice_cache.services.regeneration import RegenerationEngine
from voice_cache.tts.client import BaseTTSClient, create_client

_LOG = get_logger("voice-cache.service")


class VoiceCacheService:
    """
    Args:
        config: Validated configuration.
        client: TTS client; built from config.tts when omitted.
        directory: Message directory; a YamlMessageDirectory on
            config.messages.path when omitted.
        clock: Unix time source for entry timestamps and eviction.
    """

    def __init__(
        self,
        config: VoiceCacheConfig,
        client: Optional[BaseTTSClient] = None,
        directory: Optional[MessageDirectory] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.default_voice = VoiceConfig.from_dict(config.tts.default_voice)

        self.client = client if client is not None else create_client(config)
        self.directory = directory if directory is not None else YamlMessageDirectory(
            config.messages.path, default_voice=self.default_voice,
        )

        self.store = CacheStore(
            base_dir=config.store.base_dir,
            memory_max_items=config.store.memory_max_items,
            clock=clock,
        )
        self.store.initialize()

        self.counters = LookupCounters()
        self.coordinator = RequestCoordinator(
            store=self.store,
            client=self.client,
            synthesis_timeout_s=config.synthesis.timeout_s,
            max_workers=config.synthesis.max_workers,
            counters=self.counters,
        )

        self.regeneration = RegenerationEngine(
            coordinator=self.coordinator,
            directory=self.directory,
            max_workers=config.regeneration.max_workers,
            record_successes=config.regeneration.record_successes,
        )
        self.maintenance = CacheMaintenance(self.store, counters=self.counters)
        self._closed = False

        info(
            _LOG, "service_ready",
            provider=self.client.name, store=str(self.store.base_dir),
            owners=len(self.directory.list_owner_ids()),
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "VoiceCacheService":
        return cls(VoiceCacheConfig.from_settings(settings), **kwargs)

    # =========================================================================
    # Audio
    # =========================================================================

    def get_or_generate(
        self,
        owner_id: str,
        text: str,
        voice_config: Optional[VoiceConfig] = None,
        wait_timeout: Optional[float] = None,
    ) -> bytes:
        return self.coordinator.get_or_generate(
            owner_id, text, voice_config or self.default_voice, wait_timeout=wait_timeout,
        )

    async def aget_or_generate(self, owner_id: str, text: str, voice_config: Optional[VoiceConfig] = None) -> bytes:
        return await self.coordinator.aget_or_generate(owner_id, text, voice_config or self.default_voice)

    def audio_for_owner(self, owner_id: str, wait_timeout: Optional[float] = None) -> bytes:
        """
        Audio for a directory message, generated on first request.

        Raises:
            OwnerNotFoundError: Unknown owner.
            GenerationFailed: Synthesis failed.
        """
        message = self.directory.get_message(owner_id)
        if message is None:
            raise OwnerNotFoundError(owner_id)
        return self.coordinator.get_or_generate(
            owner_id, message.text, message.voice_config, wait_timeout=wait_timeout,
        )

    async def aaudio_for_owner(self, owner_id: str) -> bytes:
        message = self.directory.get_message(owner_id)
        if message is None:
            raise OwnerNotFoundError(owner_id)
        return await self.coordinator.aget_or_generate(owner_id, message.text, message.voice_config)

    def fingerprint(self, text: str, voice_config: Optional[VoiceConfig] = None) -> str:
        return fingerprint(text, voice_config or self.default_voice)

    @property
    def mime_type(self) -> str:
        return self.client.mime_type

    # =========================================================================
    # Regeneration
    # =========================================================================

    def regenerate_one(self, owner_id: str) -> RegenerationOutcome:
        return self.regeneration.regenerate_one(owner_id)

    def regenerate_all(self, owner_ids: Optional[Iterable[str]] = None) -> BulkRegenerationResult:
        return self.regeneration.regenerate_all(owner_ids)

    def needs_regeneration(self, owner_id: str) -> bool:
        return self.regeneration.needs_regeneration(owner_id)

    # =========================================================================
    # Maintenance
    # =========================================================================

    def clear_older_than(self, days: Optional[float] = None) -> int:
        return self.maintenance.clear_older_than(
            self.config.maintenance.default_days if days is None else days
        )

    def compute_statistics(self) -> CacheStatistics:
        return self.maintenance.compute_statistics()

    def list_entries(self, limit: int = 50, offset: int = 0) -> Tuple[List[EntryInfo], int]:
        return self.maintenance.list_entries(limit=limit, offset=offset)

    def delete_entry(self, key: str) -> bool:
        return self.maintenance.delete_entry(key)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def get_health_info(self) -> Dict[str, Any]:
        flights = self.coordinator.flight_stats()
        hits, misses = self.counters.snapshot()
        return {
            "ok": not self._closed,
            "provider": self.client.name,
            "mime_type": self.mime_type,
            "store": {
                "base_dir": str(self.store.base_dir),
                "initialized": self.store.initialized,
                "memory": self.store.memory.stats(),
            },
            "lookups": {"hits": hits, "misses": misses},
            "flights": {
                "started": flights.started,
                "joined": flights.joined,
                "in_flight": flights.in_flight,
            },
            "messages": len(self.directory.list_owner_ids()),
            "metrics_enabled": metrics.enabled,
        }

    def close(self) -> None:
        """Finish running generations and release the provider client."""
        if self._closed:
            return
        self._closed = True
        self.coordinator.close()
        self.client.close()
        info(_LOG, "service_closed")

    def __enter__(self) -> "VoiceCacheService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
