"""
RequestCoordinator - cached audio lookup with single-flight generation.

Lookup path:
    validate -> current entry fresh? -> return bytes (hit)
             -> same key already stored by another owner? -> adopt (hit)
             -> join or start the flight for (owner, key) -> synthesize, save

Guarantees:
    - Concurrent callers for the same owner and the same desired
      (text, voice) share one provider call and receive the same bytes
      or the same exception instance.
    - Work for one owner is linearised by a per-owner lock held for the
      whole read-check-generate-write sequence. Different owners never
      share a lock.
    - Flights for one owner queue in that owner's lane, outside the
      worker pool, so they never hold workers while waiting for the lock.
    - A provider failure writes nothing; the previous entry stays current.
    - A caller that stops waiting (wait_timeout, asyncio cancellation)
      leaves the flight running; its result still lands in the cache.
    - The provider call is bounded by the synthesis timeout, measured from
      the moment the call starts. Each call runs on its own daemon thread,
      so a hung call never takes capacity from later ones. On expiry the
      flight fails with SynthesisTimeoutError and releases the lock; a
      late result is discarded.
"""
from __future__ import annotations

import asyncio
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Optional

from voice_cache.cache.fingerprint import fingerprint, text_hash
from voice_cache.cache.models import CacheEntry, LookupCounters, VoiceConfig
from voice_cache.cache.staleness import is_stale
from voice_cache.cache.store import CacheStore
from voice_cache.core.concurrency import KeyedLocks, SingleFlight, SingleFlightStats
from voice_cache.core.config import Defaults
from voice_cache.core.errors import GenerationFailed, ProviderError, SynthesisTimeoutError
from voice_cache.core.logging import debug, fail, get_logger, info, success, verbose
from voice_cache.core.metrics import metrics
from voice_cache.services.validators import validate_owner_id, validate_text, validate_voice_config
from voice_cache.tts.client import BaseTTSClient
from voice_cache.utils.timeit import timeit

_LOG = get_logger("voice-cache.coordinator")


def _owner_lane(flight_key: tuple) -> str:
    # flight keys are (kind, owner_id, fingerprint)
    return flight_key[1]


@dataclass(frozen=True)
class GenerationResult:
    """What a flight produced: the entry now current, and whether the provider was called."""
    entry: CacheEntry
    synthesized: bool


class RequestCoordinator:
    """
    Args:
        store: Cache store.
        client: TTS provider client.
        synthesis_timeout_s: Bound on a single provider call.
        max_workers: Flight worker threads, i.e. owners served at once.
        counters: Hit/miss counters to update; a fresh set is created if omitted.
    """

    def __init__(
        self,
        store: CacheStore,
        client: BaseTTSClient,
        synthesis_timeout_s: float = Defaults.SYNTHESIS_TIMEOUT_S,
        max_workers: int = Defaults.SYNTHESIS_MAX_WORKERS,
        counters: Optional[LookupCounters] = None,
    ):
        self.store = store
        self.client = client
        self.synthesis_timeout_s = float(synthesis_timeout_s)
        self.counters = counters if counters is not None else LookupCounters()

        self._flight_pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="voice-cache-flight")
        self._flights = SingleFlight(self._flight_pool, lane_of=_owner_lane)
        self._owner_locks = KeyedLocks()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_or_generate(
        self,
        owner_id: str,
        text: str,
        voice_config: VoiceConfig,
        wait_timeout: Optional[float] = None,
    ) -> bytes:
        """
        Return audio for (text, voice_config), generating it if needed.

        Args:
            owner_id: Logical slot the audio belongs to.
            text: Text to speak.
            voice_config: Desired voice.
            wait_timeout: How long this caller waits for a running flight.
                None waits until the flight finishes.

        Raises:
            GenerationFailed: ProviderError, InvalidInputError or
                SynthesisTimeoutError.
            StorageError: Store read or write failed.
        """
        audio, future = self._begin_get(owner_id, text, voice_config)
        if audio is not None:
            return audio
        try:
            result = self._wait(future, wait_timeout, owner_id)
        except GenerationFailed:
            self.counters.record_miss()
            metrics.record_lookup("miss")
            raise
        return self._finish(result).entry.audio_bytes

    async def aget_or_generate(self, owner_id: str, text: str, voice_config: VoiceConfig) -> bytes:
        """
        Async variant of get_or_generate.

        Cancelling the awaiting task does not cancel the flight.
        """
        audio, future = await asyncio.to_thread(self._begin_get, owner_id, text, voice_config)
        if audio is not None:
            return audio
        try:
            result = await asyncio.shield(asyncio.wrap_future(future))
        except GenerationFailed:
            self.counters.record_miss()
            metrics.record_lookup("miss")
            raise
        return self._finish(result).entry.audio_bytes

    def regenerate(
        self,
        owner_id: str,
        text: str,
        voice_config: VoiceConfig,
        wait_timeout: Optional[float] = None,
    ) -> CacheEntry:
        """
        Force a provider call for the owner and make the result current.

        Uses the same per-owner lock as lookups. On failure the previous
        entry is left untouched and GenerationFailed is raised.
        """
        owner_id = validate_owner_id(owner_id)
        text = validate_text(text)
        validate_voice_config(voice_config)
        key = fingerprint(text, voice_config)

        future, leader = self._flights.submit(
            ("regen", owner_id, key),
            lambda: self._generate(owner_id, text, voice_config, key, force=True),
        )
        if not leader:
            debug(_LOG, "regeneration_joined", owner_id=owner_id)
        return self._wait(future, wait_timeout, owner_id).entry

    def flight_stats(self) -> SingleFlightStats:
        return self._flights.stats()

    def close(self) -> None:
        """Wait for running and queued flights, then stop the worker pool."""
        self._flight_pool.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _begin_get(self, owner_id: str, text: str, voice_config: VoiceConfig) -> tuple[Optional[bytes], Optional[Future]]:
        owner_id = validate_owner_id(owner_id)
        text = validate_text(text)
        validate_voice_config(voice_config)

        entry = self._fresh_entry(owner_id, text, voice_config)
        if entry is not None:
            self.counters.record_hit()
            metrics.record_lookup("hit")
            info(_LOG, "cache_hit", owner_id=owner_id, cache="hit", bytes=entry.size_bytes)
            return entry.audio_bytes, None

        key = fingerprint(text, voice_config)
        future, leader = self._flights.submit(
            ("get", owner_id, key),
            lambda: self._generate(owner_id, text, voice_config, key, force=False),
        )
        if not leader:
            debug(_LOG, "flight_waiting", owner_id=owner_id, key=key[:8])
        return None, future

    def _fresh_entry(self, owner_id: str, text: str, voice_config: VoiceConfig) -> Optional[CacheEntry]:
        current = self.store.get_current_info(owner_id)
        if is_stale(current, text, voice_config):
            return None
        # Evicted between the two reads -> None, treated as a miss
        return self.store.get_entry(current.key)

    def _wait(self, future: Future, wait_timeout: Optional[float], owner_id: str) -> GenerationResult:
        try:
            return future.result(timeout=wait_timeout)
        except FutureTimeout:
            raise SynthesisTimeoutError(
                f"gave up waiting for audio after {wait_timeout}s; generation continues",
                details={"owner_id": owner_id},
            )

    def _finish(self, result: GenerationResult) -> GenerationResult:
        if result.synthesized:
            self.counters.record_miss()
            metrics.record_lookup("miss")
        else:
            self.counters.record_hit()
            metrics.record_lookup("hit")
        return result

    def _generate(
        self,
        owner_id: str,
        text: str,
        voice_config: VoiceConfig,
        key: str,
        force: bool,
    ) -> GenerationResult:
        with self._owner_locks.hold(owner_id):
            if not force:
                # Another flight may have finished while this one queued
                entry = self._fresh_entry(owner_id, text, voice_config)
                if entry is not None:
                    return GenerationResult(entry, synthesized=False)

                existing = self.store.get_entry(key)
                if existing is not None:
                    self.store.set_current(owner_id, key)
                    info(_LOG, "entry_adopted", owner_id=owner_id, key=key[:8], cache="hit")
                    return GenerationResult(existing, synthesized=False)

            audio, duration_ms = self._synthesize(owner_id, text, voice_config)
            entry = CacheEntry(
                key=key,
                owner_id=owner_id,
                audio_bytes=audio,
                text_hash=text_hash(text),
                voice_config=voice_config,
                created_at=self.store.now(),
                generation_duration_ms=duration_ms,
                mime_type=self.client.mime_type,
            )
            self.store.save(entry)

        success(
            _LOG, "audio_generated",
            owner_id=owner_id, key=key[:8], bytes=entry.size_bytes,
            forced=force, cache="miss", seconds=round(duration_ms / 1000.0, 3),
        )
        return GenerationResult(entry, synthesized=True)

    def _synthesize(self, owner_id: str, text: str, voice_config: VoiceConfig) -> tuple[bytes, float]:
        metrics.inc_inflight()
        verbose(_LOG, "synthesis_start", owner_id=owner_id, chars=len(text), voice_id=voice_config.voice_id)
        try:
            with timeit("synthesis") as t:
                future = self._start_provider_call(owner_id, text, voice_config)
                try:
                    audio = future.result(timeout=self.synthesis_timeout_s)
                except FutureTimeout:
                    metrics.record_synthesis("timeout", t.seconds)
                    fail(_LOG, "synthesis_timeout", owner_id=owner_id, timeout_s=self.synthesis_timeout_s)
                    raise SynthesisTimeoutError(
                        f"synthesis exceeded {self.synthesis_timeout_s}s",
                        details={"owner_id": owner_id},
                    )
                except GenerationFailed as e:
                    metrics.record_synthesis("error", t.seconds)
                    fail(_LOG, "synthesis_failed", owner_id=owner_id, code=e.code, error=e.message)
                    raise
                except Exception as e:
                    metrics.record_synthesis("error", t.seconds)
                    fail(_LOG, "synthesis_failed", owner_id=owner_id, code="PROVIDER_ERROR", error=str(e))
                    raise ProviderError(f"provider call failed: {e}", details={"owner_id": owner_id}) from e
        finally:
            metrics.dec_inflight()

        if not audio:
            metrics.record_synthesis("error", t.seconds)
            raise ProviderError("provider returned empty audio", details={"owner_id": owner_id})

        metrics.record_synthesis("success", t.seconds, audio_bytes=len(audio))
        return bytes(audio), t.seconds * 1000.0

    def _start_provider_call(self, owner_id: str, text: str, voice_config: VoiceConfig) -> Future:
        future: Future = Future()
        future.set_running_or_notify_cancel()

        def call() -> None:
            try:
                audio = self.client.synthesize(text, voice_config)
            except BaseException as e:
                future.set_exception(e)
            else:
                future.set_result(audio)

        threading.Thread(target=call, name=f"voice-cache-synth-{owner_id}", daemon=True).start()
        return future
