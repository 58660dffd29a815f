"""
FastAPI application entry point.

Usage:
    uvicorn voice_cache.main:app --host 0.0.0.0 --port 8000

The VoiceCacheService is built from settings when the app starts and
closed when it stops. Passing a service to create_app() skips that;
the caller then owns its lifetime.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from voice_cache import __version__
from voice_cache.api.dependencies import get_settings
from voice_cache.api.routes import router
from voice_cache.core.logging import configure_logging
from voice_cache.services.voice_service import VoiceCacheService


def create_app(service: Optional[VoiceCacheService] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        service: Pre-built service (tests, embedding). When None, one is
            created from settings at startup and closed at shutdown.
    """
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "voice_service", None) is None:
            owned = VoiceCacheService.from_settings(get_settings())
            app.state.voice_service = owned
        try:
            yield
        finally:
            if owned is not None:
                owned.close()
                app.state.voice_service = None

    app = FastAPI(title="voice-cache", version=__version__, lifespan=lifespan)
    app.state.voice_service = service
    app.include_router(router)
    return app


# Application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
