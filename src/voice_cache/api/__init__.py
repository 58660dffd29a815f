"""
FastAPI admin and playback API for voice-cache.

    - routes.py: /v1/audio, /v1/admin/*, /health, /metrics
    - schemas.py: request models
    - dependencies.py: settings and service providers
"""
