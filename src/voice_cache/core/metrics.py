"""
Prometheus metrics for voice-cache.

Collection is optional: when prometheus_client is not importable every
recording call is a no-op and /metrics answers with a short notice.

Metrics Exposed:
    voice_cache_lookups_total              - lookups by result (hit/miss)
    voice_cache_synthesis_total            - provider calls by status
    voice_cache_synthesis_duration_seconds - provider call latency
    voice_cache_audio_bytes_total          - bytes written to the store
    voice_cache_regenerations_total        - regenerations by outcome
    voice_cache_evictions_total            - entries removed by maintenance
    voice_cache_inflight_generations       - single-flight generations running

Usage:
    from voice_cache.core.metrics import metrics

    metrics.record_lookup("hit")
    metrics.record_synthesis("success", duration=1.2, audio_bytes=20480)
    content, content_type = metrics.get_metrics_response()
"""
from __future__ import annotations

from typing import Optional

try:
    from prometheus_client import (
        CONTENT_TYPE_LATEST,
        CollectorRegistry,
        Counter,
        Gauge,
        Histogram,
        generate_latest,
    )
    PROMETHEUS_AVAILABLE = True
except ImportError:
    PROMETHEUS_AVAILABLE = False
    Counter = None
    Histogram = None
    Gauge = None
    CollectorRegistry = None


class CacheMetrics:
    """
    Process-wide metric collector.

    Uses its own CollectorRegistry so several services (or tests) in one
    interpreter never collide on metric names in the default registry.
    """

    def __init__(self, enabled: Optional[bool] = None):
        self._enabled = PROMETHEUS_AVAILABLE if enabled is None else (enabled and PROMETHEUS_AVAILABLE)
        self._registry: Optional["CollectorRegistry"] = None

        if self._enabled:
            self._setup_metrics()

    def _setup_metrics(self) -> None:
        self._registry = CollectorRegistry()

        self._lookups = Counter(
            "voice_cache_lookups_total",
            "Cache lookups by result",
            ["result"],
            registry=self._registry,
        )
        self._synthesis_total = Counter(
            "voice_cache_synthesis_total",
            "Provider synthesis calls by status",
            ["status"],
            registry=self._registry,
        )
        self._synthesis_duration = Histogram(
            "voice_cache_synthesis_duration_seconds",
            "Provider synthesis duration in seconds",
            buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )
        self._audio_bytes = Counter(
            "voice_cache_audio_bytes_total",
            "Audio bytes written to the store",
            registry=self._registry,
        )
        self._regenerations = Counter(
            "voice_cache_regenerations_total",
            "Regenerations by outcome",
            ["outcome"],
            registry=self._registry,
        )
        self._evictions = Counter(
            "voice_cache_evictions_total",
            "Entries removed by maintenance",
            registry=self._registry,
        )
        self._inflight = Gauge(
            "voice_cache_inflight_generations",
            "Generations currently running",
            registry=self._registry,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    def record_lookup(self, result: str) -> None:
        """Record a lookup; result is "hit" or "miss"."""
        if not self._enabled:
            return
        self._lookups.labels(result=result).inc()

    def record_synthesis(self, status: str, duration: float, audio_bytes: int = 0) -> None:
        """
        Record one provider call.

        Args:
            status: "success", "error" or "timeout"
            duration: Wall time of the call in seconds
            audio_bytes: Size of the produced audio, if any
        """
        if not self._enabled:
            return
        self._synthesis_total.labels(status=status).inc()
        self._synthesis_duration.observe(duration)
        if audio_bytes > 0:
            self._audio_bytes.inc(audio_bytes)

    def record_regeneration(self, outcome: str) -> None:
        if not self._enabled:
            return
        self._regenerations.labels(outcome=outcome).inc()

    def record_evictions(self, count: int) -> None:
        if not self._enabled or count <= 0:
            return
        self._evictions.inc(count)

    def inc_inflight(self) -> None:
        if not self._enabled:
            return
        self._inflight.inc()

    def dec_inflight(self) -> None:
        if not self._enabled:
            return
        self._inflight.dec()

    def get_metrics_response(self) -> tuple[bytes, str]:
        """Return (body, content_type) for the /metrics endpoint."""
        if not self._enabled:
            return (
                b"# Metrics not available (prometheus_client not installed)\n",
                "text/plain; charset=utf-8",
            )
        return (generate_latest(self._registry), CONTENT_TYPE_LATEST)


metrics = CacheMetrics()
