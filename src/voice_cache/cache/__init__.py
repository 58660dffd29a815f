"""
Cache layer: keys, staleness, durable store and maintenance.

Components:
    - models.py: VoiceConfig, CacheEntry and result dataclasses
    - fingerprint.py: deterministic cache keys from text + voice config
    - staleness.py: is an existing entry still valid for the desired input
    - memory.py: in-process LRU read tier for hot audio blobs
    - store.py: sharded on-disk store with per-owner current pointers
    - maintenance.py: age-based eviction, listing and statistics
"""
from .fingerprint import fingerprint, text_hash
from .models import (
    BulkRegenerationResult,
    CacheEntry,
    CacheStatistics,
    EntryInfo,
    LookupCounters,
    RegenerationOutcome,
    VoiceConfig,
)
from .staleness import is_stale
from .store import CacheStore

__all__ = [
    "BulkRegenerationResult",
    "CacheEntry",
    "CacheStatistics",
    "CacheStore",
    "EntryInfo",
    "LookupCounters",
    "RegenerationOutcome",
    "VoiceConfig",
    "fingerprint",
    "is_stale",
    "text_hash",
]
