"""
voice-cache: TTS audio cache and regeneration engine.

Spoken messages are synthesized once through a TTS provider (ElevenLabs
by default) and served from a durable on-disk cache afterwards. Cache
keys are derived from the exact text and voice settings, so a change to
either regenerates the audio exactly once.

Key Features:
    - Deterministic fingerprints over text + voice configuration
    - Single-flight generation: concurrent requests share one provider call
    - Forced regeneration of one message or the whole corpus, with
      per-item failure accounting
    - Age-based eviction and aggregate statistics
    - FastAPI admin API, operator CLI, optional Prometheus metrics

Example Usage:
    >>> from voice_cache.core.config import VoiceCacheConfig
    >>> from voice_cache.services import VoiceCacheService
    >>> from voice_cache.tts import StubTTSClient
    >>>
    >>> svc = VoiceCacheService(VoiceCacheConfig(), client=StubTTSClient())
    >>> audio = svc.get_or_generate("msg_42", "Welcome back")
    >>> svc.get_or_generate("msg_42", "Welcome back") == audio   # cache hit
    True
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
