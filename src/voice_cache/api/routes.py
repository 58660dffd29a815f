"""
voice-cache API routes.

Endpoints:
    GET    /v1/audio/{owner_id}              cached audio (generated on first request)
    POST   /v1/admin/regenerate              regenerate one owner or all
    GET    /v1/admin/regenerate              needs-regeneration flag or statistics
    GET    /v1/admin/cache                   entries (paginated) + statistics
    DELETE /v1/admin/cache?key=              delete one entry
    DELETE /v1/admin/cache/older-than?days=  age-based eviction
    GET    /health                           service status
    GET    /metrics                          Prometheus metrics

Error Handling:
    Errors are JSON in one format:
    {
        "ok": false,
        "error": "<ERROR_CODE>",
        "message": "<human readable message>"
    }

    Status codes come from the error code:
        - INVALID_INPUT -> 400
        - NOT_FOUND -> 404
        - PROVIDER_ERROR -> 502
        - TIMEOUT -> 504
        - STORAGE_ERROR, INTERNAL_ERROR -> 500

Example:
    curl http://localhost:8000/v1/audio/msg_42 --output msg_42.mp3
    curl -X POST http://localhost:8000/v1/admin/regenerate -d '{"all": true}' \\
        -H "Content-Type: application/json"
"""
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse

from voice_cache.api.dependencies import get_voice_service
from voice_cache.api.schemas import RegenerateRequest
from voice_cache.core.errors import HTTP_STATUS, ErrorCode, InvalidArgumentError, VoiceCacheError
from voice_cache.core.logging import error, get_logger, info, set_request_id
from voice_cache.core.metrics import metrics
from voice_cache.services.voice_service import VoiceCacheService

router = APIRouter()

_LOG = get_logger("voice-cache.api")


def _new_request_id() -> str:
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)
    return rid


def _error_response(err: VoiceCacheError, rid: str) -> JSONResponse:
    body = err.to_dict()
    body["request_id"] = rid
    return JSONResponse(status_code=HTTP_STATUS.get(err.code, 500), content=body)


def _internal_error(exc: Exception, rid: str) -> JSONResponse:
    error(_LOG, "unhandled_error", error=repr(exc))
    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": ErrorCode.INTERNAL_ERROR,
            "message": "Internal server error",
            "request_id": rid,
        },
    )


@router.get("/v1/audio/{owner_id}", response_class=Response)
async def get_audio(owner_id: str, service: VoiceCacheService = Depends(get_voice_service)):
    """
    Serve the owner's audio, synthesizing it on a miss.

    The client disconnecting does not abort a synthesis in progress;
    the result is still cached for the next request.
    """
    rid = _new_request_id()
    try:
        audio = await service.aaudio_for_owner(owner_id)
    except VoiceCacheError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(e, rid)

    headers = {
        "X-Request-Id": rid,
        "X-Bytes": str(len(audio)),
        "Cache-Control": "public, max-age=3600",
    }
    return Response(content=audio, media_type=service.mime_type, headers=headers)


@router.post("/v1/admin/regenerate")
def regenerate(req: RegenerateRequest, service: VoiceCacheService = Depends(get_voice_service)):
    rid = _new_request_id()
    try:
        if req.all:
            result = service.regenerate_all(req.owner_ids)
            return {"ok": True, "request_id": rid, **result.to_dict()}

        if not req.owner_id:
            raise InvalidArgumentError("either owner_id or all=true is required")

        outcome = service.regenerate_one(req.owner_id)
        if outcome.succeeded:
            info(_LOG, "admin_regenerated", owner_id=outcome.owner_id)
            return {"ok": True, "request_id": rid, "outcome": outcome.to_dict()}

        code = outcome.error_code or ErrorCode.INTERNAL_ERROR
        return JSONResponse(
            status_code=HTTP_STATUS.get(code, 500),
            content={
                "ok": False,
                "error": code,
                "message": outcome.error_message,
                "request_id": rid,
                "outcome": outcome.to_dict(),
            },
        )
    except VoiceCacheError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(e, rid)


@router.get("/v1/admin/regenerate")
def regeneration_status(
    owner_id: Optional[str] = Query(default=None),
    service: VoiceCacheService = Depends(get_voice_service),
):
    """Needs-regeneration flag for one owner, or cache statistics without one."""
    rid = _new_request_id()
    try:
        if owner_id:
            return {
                "ok": True,
                "owner_id": owner_id,
                "needs_regeneration": service.needs_regeneration(owner_id),
            }
        return {"ok": True, "statistics": service.compute_statistics().to_dict()}
    except VoiceCacheError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(e, rid)


@router.get("/v1/admin/cache")
def list_cache(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    service: VoiceCacheService = Depends(get_voice_service),
):
    rid = _new_request_id()
    try:
        entries, total = service.list_entries(limit=limit, offset=offset)
        return {
            "ok": True,
            "entries": [e.to_dict() for e in entries],
            "statistics": service.compute_statistics().to_dict(),
            "pagination": {
                "limit": limit,
                "offset": offset,
                "total": total,
                "has_more": offset + len(entries) < total,
            },
        }
    except VoiceCacheError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(e, rid)


@router.delete("/v1/admin/cache")
def delete_cache_entry(
    key: str = Query(..., min_length=1),
    service: VoiceCacheService = Depends(get_voice_service),
):
    rid = _new_request_id()
    try:
        if not service.delete_entry(key):
            return JSONResponse(
                status_code=404,
                content={
                    "ok": False,
                    "error": ErrorCode.NOT_FOUND,
                    "message": f"no cache entry {key}",
                    "request_id": rid,
                },
            )
        return {"ok": True, "deleted": key}
    except VoiceCacheError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(e, rid)


@router.delete("/v1/admin/cache/older-than")
def clear_old_entries(
    days: Optional[float] = Query(default=None),
    service: VoiceCacheService = Depends(get_voice_service),
):
    """Evict entries older than `days` (default from maintenance.default_days)."""
    rid = _new_request_id()
    try:
        effective = service.config.maintenance.default_days if days is None else days
        removed = service.clear_older_than(effective)
        return {"ok": True, "days": effective, "removed": removed}
    except VoiceCacheError as e:
        return _error_response(e, rid)
    except Exception as e:
        return _internal_error(e, rid)


@router.get("/health")
def health(service: VoiceCacheService = Depends(get_voice_service)):
    return service.get_health_info()


@router.get("/metrics")
def prometheus_metrics():
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
