"""
Cache maintenance: age-based eviction, explicit deletion, listing and
aggregate statistics.

Eviction is a storage concern only. It removes entries by age whether
or not they are current for an owner; an owner whose entry was evicted
simply misses on its next lookup and is regenerated.
"""
from __future__ import annotations

from typing import List, Optional, Tuple

from voice_cache.cache.models import CacheStatistics, EntryInfo, LookupCounters
from voice_cache.cache.store import CacheStore
from voice_cache.core.errors import InvalidArgumentError
from voice_cache.core.logging import get_logger, info, verbose
from voice_cache.core.metrics import metrics
from voice_cache.utils.timeit import timeit

_LOG = get_logger("voice-cache.maintenance")

SECONDS_PER_DAY = 86400


class CacheMaintenance:
    """
    Operator-facing maintenance over a CacheStore.

    Args:
        store: Store to operate on.
        counters: Lookup counters from the request path. Without them the
            hit rate in statistics is reported as unavailable.
    """

    def __init__(self, store: CacheStore, counters: Optional[LookupCounters] = None):
        self.store = store
        self.counters = counters

    def clear_older_than(self, days: float) -> int:
        """
        Delete every entry created more than `days` days ago.

        Entries created exactly at the cutoff are kept.

        Returns:
            Number of entries removed.

        Raises:
            InvalidArgumentError: If days is negative.
            StorageError: If the store cannot be scanned or a delete fails.
        """
        if days is None or days < 0:
            raise InvalidArgumentError(f"days must be non-negative, got {days}")

        cutoff = self.store.now() - float(days) * SECONDS_PER_DAY
        removed = 0
        with timeit("clear_older_than") as t:
            expired = [e.key for e in self.store.iter_infos() if e.created_at < cutoff]
            for key in expired:
                if self.store.delete(key):
                    removed += 1

        metrics.record_evictions(removed)
        info(_LOG, "cache_cleared", days=days, evicted=removed, seconds=round(t.seconds, 4))
        return removed

    def delete_entry(self, key: str) -> bool:
        removed = self.store.delete(key)
        if removed:
            metrics.record_evictions(1)
            info(_LOG, "entry_deleted", key=key[:8])
        return removed

    def list_entries(self, limit: int = 50, offset: int = 0) -> Tuple[List[EntryInfo], int]:
        """
        Page through entries, newest first.

        Returns:
            (page, total) where total counts all entries.
        """
        if limit < 1:
            raise InvalidArgumentError(f"limit must be positive, got {limit}")
        if offset < 0:
            raise InvalidArgumentError(f"offset must be non-negative, got {offset}")

        entries = sorted(self.store.iter_infos(), key=lambda e: (-e.created_at, e.key))
        return entries[offset:offset + limit], len(entries)

    def compute_statistics(self) -> CacheStatistics:
        with timeit("compute_statistics") as t:
            infos = list(self.store.iter_infos())
            keys = {e.key for e in infos}
            owners = {owner for owner, key in self.store.iter_pointers() if key in keys}

        total_bytes = sum(e.size_bytes for e in infos)
        if infos:
            avg_ms: Optional[float] = sum(e.generation_duration_ms for e in infos) / len(infos)
            oldest: Optional[float] = min(e.created_at for e in infos)
            newest: Optional[float] = max(e.created_at for e in infos)
        else:
            avg_ms = oldest = newest = None

        hit_rate = self.counters.hit_rate() if self.counters is not None else None

        verbose(_LOG, "statistics_computed", entries=len(infos), seconds=round(t.seconds, 4))
        return CacheStatistics(
            total_entries=len(infos),
            total_bytes=total_bytes,
            owners_with_audio=len(owners),
            average_generation_duration_ms=avg_ms,
            oldest_created_at=oldest,
            newest_created_at=newest,
            hit_rate_estimate=hit_rate,
        )
