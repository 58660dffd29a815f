"""
FastAPI dependency providers.

The service is created by the application lifespan (main.py) and kept
on app.state; handlers receive it through get_voice_service().
"""
from __future__ import annotations

from functools import lru_cache

from fastapi import Request

from voice_cache.core.config import Settings, load_settings_or_default, settings_path
from voice_cache.services.voice_service import VoiceCacheService


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load settings once per process.

    Reads VOICE_CACHE_SETTINGS (default config/settings.yaml); built-in
    defaults apply when the file is absent.
    """
    return load_settings_or_default(settings_path())


def get_voice_service(request: Request) -> VoiceCacheService:
    return request.app.state.voice_service
