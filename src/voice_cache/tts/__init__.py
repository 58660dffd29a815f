"""
TTS provider boundary.

    - client.py: BaseTTSClient, StubTTSClient and the create_client() factory
    - elevenlabs.py: ElevenLabs REST client
"""
from .client import BaseTTSClient, StubTTSClient, create_client

__all__ = ["BaseTTSClient", "StubTTSClient", "create_client"]
