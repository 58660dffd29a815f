"""
Log formatters: JSON Lines for files, colored text for the console.

JSONL:
    {"ts":"2026-03-02T10:15:00+00:00","level":2,"tag":"INFO","message":"cache_hit","request_id":"a1b2c3","extra":{"owner_id":"msg_42"}}

Console:
    10:15:00 [ INFO  ] (a1b2c3) cache_hit owner_id=msg_42 0.002s
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, NamedTuple, Optional

from . import colors
from .colors import Colors, get_tag_color


class _Fields(NamedTuple):
    tag: str
    request_id: str
    event: Optional[str]
    seconds: Optional[float]
    extra: Dict[str, Any]


def _fields(record: logging.LogRecord) -> _Fields:
    """Structured attributes attached by the voice-cache log helpers."""
    return _Fields(
        tag=getattr(record, "tag", record.levelname),
        request_id=getattr(record, "request_id", "-"),
        event=getattr(record, "event", None),
        seconds=getattr(record, "seconds", None),
        extra=getattr(record, "extra_data", None) or {},
    )


def _paint(text: str, color: str) -> str:
    return colors.colorize(text, color, enabled=colors.USE_COLORS)


class JsonlFormatter(logging.Formatter):
    """One JSON object per record, with request id and extra fields."""

    def format(self, record: logging.LogRecord) -> str:
        f = _fields(record)
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": f.tag,
            "message": record.getMessage(),
            "request_id": f.request_id,
        }
        if f.event:
            payload["event"] = f.event
        if f.seconds is not None:
            payload["seconds"] = f.seconds
        if f.extra:
            payload["extra"] = f.extra
        return json.dumps(payload, ensure_ascii=False, default=str)


def _timing_color(seconds: float) -> str:
    if seconds < 0.1:
        return Colors.GREEN
    if seconds < 1.0:
        return Colors.YELLOW
    return Colors.RED


def _field_color(key: str, value: Any) -> str:
    if key == "cache":
        return Colors.GREEN if value == "hit" else Colors.YELLOW
    if key == "succeeded" and isinstance(value, int):
        return Colors.GREEN
    if key in ("failed", "evicted") and isinstance(value, int) and value > 0:
        return Colors.YELLOW
    if key == "code":
        return Colors.RED
    return Colors.DIM


class ColoredConsoleFormatter(logging.Formatter):
    """
    Human-readable console lines.

    Timing is green under 100ms, yellow under 1s, red otherwise. Cache
    status fields are highlighted so hits and misses stand out when
    tailing a busy log.
    """

    def format(self, record: logging.LogRecord) -> str:
        f = _fields(record)
        parts = [
            _paint(datetime.fromtimestamp(record.created).strftime("%H:%M:%S"), Colors.DIM),
            _paint(f"[{f.tag:^7}]", get_tag_color(f.tag)),
        ]
        if f.request_id != "-":
            parts.append(_paint(f"({f.request_id})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())
        if f.event:
            parts.append(_paint(f"event={f.event}", Colors.BLUE))
        if f.seconds is not None:
            parts.append(_paint(f"{f.seconds:.3f}s", _timing_color(f.seconds)))
        parts.extend(_paint(f"{k}={v}", _field_color(k, v)) for k, v in f.extra.items())
        return " ".join(parts)
