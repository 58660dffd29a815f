"""Shared fixtures: a scriptable TTS client, a controllable clock and service builders."""
from __future__ import annotations

import tempfile
import threading
import time
from typing import Callable, Dict, Iterable, Optional

import pytest

from voice_cache.cache.models import VoiceConfig
from voice_cache.core.config import Settings, VoiceCacheConfig
from voice_cache.services.directory import InMemoryMessageDirectory, SpokenMessage
from voice_cache.services.voice_service import VoiceCacheService
from voice_cache.tts.client import BaseTTSClient


class FakeTTSClient(BaseTTSClient):
    """
    Thread-safe scripted provider.

    Audio is b"ID3" + "<text>|<voice_id>|<call number>", so every call
    yields distinct bytes and tests can tell which call produced them.

    Args:
        delay: Seconds to sleep inside each call.
        gate: If set, each call blocks until the event is set.
        failures: text -> exception raised for that text.
    """

    name = "fake"

    def __init__(
        self,
        delay: float = 0.0,
        gate: Optional[threading.Event] = None,
        failures: Optional[Dict[str, Exception]] = None,
    ):
        self.delay = delay
        self.gate = gate
        self.failures: Dict[str, Exception] = dict(failures or {})
        self._lock = threading.Lock()
        self.calls = 0
        self.texts = []
        self.closed = False

    def synthesize(self, text: str, voice_config: VoiceConfig) -> bytes:
        with self._lock:
            self.calls += 1
            n = self.calls
            self.texts.append(text)
        if self.gate is not None:
            self.gate.wait(timeout=10)
        if self.delay:
            time.sleep(self.delay)
        exc = self.failures.get(text)
        if exc is not None:
            raise exc
        return b"ID3" + f"{text}|{voice_config.voice_id}|{n}".encode("utf-8")

    def close(self) -> None:
        self.closed = True


class FakeClock:
    """Callable unix clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_config(base_dir: str, **sections) -> VoiceCacheConfig:
    raw = {"store": {"base_dir": base_dir}, "tts": {"provider": "stub"}}
    raw.update(sections)
    return VoiceCacheConfig.from_settings(Settings(raw=raw))


def make_directory(messages: Iterable[tuple]) -> InMemoryMessageDirectory:
    """Build a directory from (owner_id, text) or (owner_id, text, VoiceConfig) tuples."""
    items = []
    for row in messages:
        voice = row[2] if len(row) > 2 else VoiceConfig()
        items.append(SpokenMessage(owner_id=row[0], text=row[1], voice_config=voice))
    return InMemoryMessageDirectory(items)


@pytest.fixture
def temp_store_dir():
    """Create a temporary store directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def voice():
    return VoiceConfig(voice_id="v1", stability=0.6)


@pytest.fixture
def fake_client():
    return FakeTTSClient()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service_factory(temp_store_dir, clock):
    """
    Build VoiceCacheService instances on the temp store; all are closed
    at teardown.
    """
    created = []

    def build(
        client: Optional[BaseTTSClient] = None,
        messages: Iterable[tuple] = (),
        directory=None,
        clock_fn: Optional[Callable[[], float]] = None,
        **sections,
    ) -> VoiceCacheService:
        svc = VoiceCacheService(
            make_config(temp_store_dir, **sections),
            client=client if client is not None else FakeTTSClient(),
            directory=directory if directory is not None else make_directory(messages),
            clock=clock_fn or clock,
        )
        created.append(svc)
        return svc

    yield build

    for svc in created:
        svc.close()
