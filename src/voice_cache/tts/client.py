"""
TTS client base class and factory.

The cache treats synthesis as an opaque, slow, possibly failing remote
call. Clients never retry; a failure surfaces as one of:

    ProviderError          provider rejected the request or errored
    InvalidInputError      the input can never succeed as sent
    SynthesisTimeoutError  the provider did not answer in time

Implementing a New Client:
    1. Inherit from BaseTTSClient
    2. Implement synthesize(text, voice_config) -> bytes
    3. Register it in create_client()
"""
from __future__ import annotations

import hashlib
import os

from voice_cache.cache.models import VoiceConfig
from voice_cache.core.config import Defaults, VoiceCacheConfig
from voice_cache.core.errors import InvalidInputError
from voice_cache.core.logging import get_logger, info

_LOG = get_logger("voice-cache.tts")


class BaseTTSClient:
    """
    Abstract TTS client.

    Subclasses must be safe to call from several threads at once.
    """

    name = "base"
    mime_type = Defaults.TTS_MIME_TYPE

    def synthesize(self, text: str, voice_config: VoiceConfig) -> bytes:
        """
        Synthesize speech.

        Args:
            text: Text to speak, already validated.
            voice_config: Voice and numeric parameters.

        Returns:
            Encoded audio bytes (mime_type).

        Raises:
            GenerationFailed: On any provider-side failure.
            NotImplementedError: If not overridden.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release connections. Safe to call more than once."""


class StubTTSClient(BaseTTSClient):
    """
    Offline client producing deterministic fake audio.

    The payload starts with an ID3 tag followed by a digest of the text
    and voice, so identical inputs give identical bytes. Useful for dry
    runs of bulk regeneration and for local development.
    """

    name = "stub"

    def __init__(self) -> None:
        self.calls = 0

    def synthesize(self, text: str, voice_config: VoiceConfig) -> bytes:
        if not text.strip():
            raise InvalidInputError("text is empty")
        self.calls += 1
        digest = hashlib.sha256(
            f"{voice_config.voice_id}|{voice_config.stability}|{text}".encode("utf-8")
        ).digest()
        return b"ID3\x04\x00\x00\x00\x00\x00\x00" + digest * 8


def create_client(config: VoiceCacheConfig) -> BaseTTSClient:
    """
    Build the TTS client named by config.tts.provider.

    The ElevenLabs API key is read from the environment variable named by
    tts.api_key_env.

    Raises:
        ValueError: Unknown provider or missing API key.
    """
    provider = config.tts.provider
    if provider == "stub":
        info(_LOG, "tts_client", provider="stub")
        return StubTTSClient()

    if provider == "elevenlabs":
        from voice_cache.tts.elevenlabs import ElevenLabsClient

        api_key = os.getenv(config.tts.api_key_env, "")
        if not api_key:
            raise ValueError(f"{config.tts.api_key_env} is not set")
        info(_LOG, "tts_client", provider="elevenlabs", base_url=config.tts.base_url)
        return ElevenLabsClient(
            api_key=api_key,
            base_url=config.tts.base_url,
            timeout_s=config.synthesis.timeout_s,
        )

    raise ValueError(f"Unknown TTS provider: {provider}")
