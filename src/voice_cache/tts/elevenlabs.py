"""
ElevenLabs text-to-speech client.

Request:
    POST {base_url}/v1/text-to-speech/{voice_id}
    Accept: audio/mpeg
    xi-api-key: <key>
    {"text": ..., "model_id": ..., "voice_settings": {...}}

Response: MP3 bytes on 200. 400 and 422 mean the request itself is bad
and map to InvalidInputError; any other status, transport failure or an
empty body maps to ProviderError; a timeout maps to
SynthesisTimeoutError.
"""
from __future__ import annotations

from typing import Optional

import httpx

from voice_cache.cache.models import VoiceConfig
from voice_cache.core.config import Defaults
from voice_cache.core.errors import InvalidInputError, ProviderError, SynthesisTimeoutError
from voice_cache.core.logging import get_logger, verbose, warn
from voice_cache.tts.client import BaseTTSClient

_LOG = get_logger("voice-cache.elevenlabs")

_INVALID_STATUSES = (400, 422)
_ERROR_BODY_CHARS = 300


class ElevenLabsClient(BaseTTSClient):
    """
    Synchronous client over a shared httpx.Client.

    Args:
        api_key: ElevenLabs API key.
        base_url: API root, without trailing slash.
        timeout_s: Per-request timeout.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
    """

    name = "elevenlabs"

    def __init__(
        self,
        api_key: str,
        base_url: str = Defaults.TTS_BASE_URL,
        timeout_s: float = Defaults.SYNTHESIS_TIMEOUT_S,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_s),
            headers={"xi-api-key": api_key, "Accept": self.mime_type},
            transport=transport,
        )

    def synthesize(self, text: str, voice_config: VoiceConfig) -> bytes:
        payload = {
            "text": text,
            "model_id": voice_config.model_id,
            "voice_settings": voice_config.provider_settings(),
        }
        path = f"/v1/text-to-speech/{voice_config.voice_id}"

        try:
            response = self._client.post(path, json=payload)
        except httpx.TimeoutException as e:
            raise SynthesisTimeoutError(
                f"ElevenLabs request timed out: {e}",
                details={"voice_id": voice_config.voice_id},
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(
                f"ElevenLabs request failed: {e}",
                details={"voice_id": voice_config.voice_id},
            ) from e

        if response.status_code != 200:
            body = response.text[:_ERROR_BODY_CHARS]
            details = {"status": response.status_code, "voice_id": voice_config.voice_id}
            warn(_LOG, "provider_rejected", status=response.status_code, body=body)
            if response.status_code in _INVALID_STATUSES:
                raise InvalidInputError(f"ElevenLabs rejected input: {body}", details=details)
            raise ProviderError(
                f"ElevenLabs API error: {response.status_code} {response.reason_phrase}",
                details=details,
            )

        audio = response.content
        if not audio:
            raise ProviderError("ElevenLabs returned empty audio", details={"voice_id": voice_config.voice_id})

        verbose(_LOG, "provider_ok", voice_id=voice_config.voice_id, bytes=len(audio))
        return audio

    def close(self) -> None:
        self._client.close()
