"""
In-process LRU read tier for audio blobs.

Sits in front of the disk store so repeated playback of the same
message does not hit the filesystem. Blobs are addressed by cache key.
A forced regeneration can rewrite the audio under an unchanged key, so
the store owns consistency: it fills and invalidates this tier only
while holding the key's lock.

Example:
    >>> tier = BlobLRU(max_items=64)
    >>> tier.put("5a2b...", b"ID3...")
    >>> tier.get("5a2b...")
    b'ID3...'
"""
from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Dict, Optional

from voice_cache.core.config import Defaults
from voice_cache.core.logging import debug, get_logger

_LOG = get_logger("voice-cache.memory")


class BlobLRU:
    """
    Thread-safe LRU mapping cache key -> audio bytes.

    A max_items of 0 disables the tier: every get misses and put is a
    no-op.
    """

    def __init__(self, max_items: int = Defaults.STORE_MEMORY_MAX_ITEMS):
        self.max_items = int(max_items)
        self._d: "OrderedDict[str, bytes]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            data = self._d.get(key)
            if data is None:
                self._misses += 1
                return None
            self._d.move_to_end(key)
            self._hits += 1
        debug(_LOG, "memory_hit", key=key[:8])
        return data

    def put(self, key: str, data: bytes) -> None:
        if self.max_items <= 0:
            return
        with self._lock:
            self._d[key] = data
            self._d.move_to_end(key)
            while len(self._d) > self.max_items:
                self._d.popitem(last=False)

    def discard(self, key: str) -> bool:
        with self._lock:
            return self._d.pop(key, None) is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._d)
            self._d.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._d)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "size": len(self._d),
                "max_items": self.max_items,
                "hits": self._hits,
                "misses": self._misses,
            }
