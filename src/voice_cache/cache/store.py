"""
Durable on-disk store for cached audio.

File Organization:
    {base_dir}/
        blobs/ab/ab12...ef.mp3        audio bytes, one file per key
        entries/ab/ab12...ef.json     entry metadata (no audio)
        owners/9c/9c3f...01.json      current pointer {owner_id, key, updated_at}

The first two characters of a key (or of the owner id's hash) pick the
shard directory.

Consistency:
    Every file is written to a unique temp name and renamed into place,
    so a reader sees either the old file or the new one, never a partial
    one. An entry is written blob first, then metadata; it is deleted
    metadata first, then blob. Metadata therefore implies a readable
    blob except while a delete is in progress, and a reader that loses
    that race gets None (a clean miss), never truncated audio.

    Owner pointers are swapped independently of entries. A pointer whose
    entry has been evicted reads as a miss.

    The memory tier is only filled, replaced or dropped under the key's
    lock, so after a write completes no reader can see the old bytes.

Errors:
    Missing files are misses. Any other I/O failure raises StorageError.
"""
from __future__ import annotations

import hashlib
import json
import os
import time
import uuid
from pathlib import Path
from typing import Callable, Iterator, Optional, Tuple

from voice_cache.cache.memory import BlobLRU
from voice_cache.cache.models import CacheEntry, EntryInfo, VoiceConfig
from voice_cache.core.concurrency import KeyedLocks, Once
from voice_cache.core.config import Defaults
from voice_cache.core.errors import StorageError
from voice_cache.core.logging import get_logger, info, verbose, warn
from voice_cache.utils.timeit import timeit

_LOG = get_logger("voice-cache.store")

BLOB_SUFFIX = ".mp3"


def _owner_digest(owner_id: str) -> str:
    return hashlib.sha256(owner_id.encode("utf-8")).hexdigest()


def _atomic_write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    try:
        tmp.write_bytes(data)
        os.replace(tmp, path)
    except BaseException:
        try:
            tmp.unlink()
        except FileNotFoundError:
            pass
        raise


def _unlink(path: Path) -> bool:
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False


class CacheStore:
    """
    Keyed audio store with per-owner current pointers.

    Args:
        base_dir: Root directory for all cache files.
        memory_max_items: Size of the in-process blob LRU (0 disables it).
        clock: Source of unix timestamps, injectable for tests.
    """

    def __init__(
        self,
        base_dir: str | Path = Defaults.STORE_BASE_DIR,
        memory_max_items: int = Defaults.STORE_MEMORY_MAX_ITEMS,
        clock: Callable[[], float] = time.time,
    ):
        self.base_dir = Path(base_dir)
        self._blobs = self.base_dir / "blobs"
        self._entries = self.base_dir / "entries"
        self._owners = self.base_dir / "owners"
        self._clock = clock
        self._memory = BlobLRU(memory_max_items)
        self._key_locks = KeyedLocks()
        self._init = Once()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Create the directory layout. Idempotent and thread-safe."""
        self._init.run(self._create_layout)

    def _create_layout(self) -> None:
        try:
            for d in (self._blobs, self._entries, self._owners):
                d.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"cannot create store at {self.base_dir}: {e}") from e
        info(_LOG, "store_ready", base_dir=str(self.base_dir))

    @property
    def initialized(self) -> bool:
        return self._init.done

    def now(self) -> float:
        return float(self._clock())

    @property
    def memory(self) -> BlobLRU:
        return self._memory

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _blob_path(self, key: str) -> Path:
        return self._blobs / key[:2] / f"{key}{BLOB_SUFFIX}"

    def _meta_path(self, key: str) -> Path:
        return self._entries / key[:2] / f"{key}.json"

    def _owner_path(self, owner_id: str) -> Path:
        digest = _owner_digest(owner_id)
        return self._owners / digest[:2] / f"{digest}.json"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _read_json(self, path: Path) -> Optional[dict]:
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"read failed: {path.name}: {e}") from e
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StorageError(f"corrupt metadata: {path.name}") from e

    def get_info(self, key: str) -> Optional[EntryInfo]:
        """Metadata for `key`, or None if absent."""
        self.initialize()
        meta = self._read_json(self._meta_path(key))
        if meta is None:
            return None
        return EntryInfo.from_metadata(meta)

    def has_entry(self, key: str) -> bool:
        return self._meta_path(key).exists()

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """
        Full entry including audio, or None on a miss.

        A concurrent delete between the metadata and blob reads also
        yields None. Memory misses are filled under the key lock, so a
        slow reader can never put back bytes a writer has replaced.
        """
        self.initialize()
        with timeit("store_read") as t:
            meta = self._read_json(self._meta_path(key))
            if meta is None:
                return None

            audio = self._memory.get(key)
            if audio is None:
                with self._key_locks.hold(key):
                    meta = self._read_json(self._meta_path(key))
                    if meta is None:
                        return None
                    audio = self._read_blob(key)
                    if audio is None:
                        return None
                    self._memory.put(key, audio)

        verbose(_LOG, "entry_read", key=key[:8], bytes=len(audio), seconds=round(t.seconds, 5))
        return CacheEntry(
            key=str(meta["key"]),
            owner_id=str(meta["owner_id"]),
            audio_bytes=audio,
            text_hash=str(meta["text_hash"]),
            voice_config=VoiceConfig.from_dict(meta.get("voice_config")),
            created_at=float(meta["created_at"]),
            generation_duration_ms=float(meta.get("generation_duration_ms", 0.0)),
            mime_type=str(meta.get("mime_type", Defaults.TTS_MIME_TYPE)),
        )

    def _read_blob(self, key: str) -> Optional[bytes]:
        try:
            return self._blob_path(key).read_bytes()
        except FileNotFoundError:
            verbose(_LOG, "blob_vanished", key=key[:8])
            return None
        except OSError as e:
            raise StorageError(f"read failed for {key[:8]}: {e}") from e

    def get_current_key(self, owner_id: str) -> Optional[str]:
        self.initialize()
        pointer = self._read_json(self._owner_path(owner_id))
        if pointer is None:
            return None
        return str(pointer["key"])

    def get_current(self, owner_id: str) -> Optional[CacheEntry]:
        """Current entry for the owner, or None if it has none or it was evicted."""
        key = self.get_current_key(owner_id)
        if key is None:
            return None
        return self.get_entry(key)

    def get_current_info(self, owner_id: str) -> Optional[EntryInfo]:
        key = self.get_current_key(owner_id)
        if key is None:
            return None
        return self.get_info(key)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def write_entry(self, entry: CacheEntry) -> None:
        """Persist blob and metadata for `entry`, replacing any entry with the same key."""
        self.initialize()
        payload = json.dumps(entry.metadata(), sort_keys=True).encode("utf-8")
        with self._key_locks.hold(entry.key):
            # Readers that hit memory mid-write must not get the old bytes
            self._memory.discard(entry.key)
            with timeit("store_write") as t:
                try:
                    _atomic_write(self._blob_path(entry.key), entry.audio_bytes)
                    _atomic_write(self._meta_path(entry.key), payload)
                except OSError as e:
                    raise StorageError(f"write failed for {entry.key[:8]}: {e}") from e
            self._memory.put(entry.key, entry.audio_bytes)

        verbose(
            _LOG, "entry_written",
            key=entry.key[:8], bytes=entry.size_bytes, seconds=round(t.seconds, 5),
        )

    def set_current(self, owner_id: str, key: str) -> None:
        """Point `owner_id` at `key`."""
        self.initialize()
        pointer = {"owner_id": owner_id, "key": key, "updated_at": self.now()}
        try:
            _atomic_write(self._owner_path(owner_id), json.dumps(pointer, sort_keys=True).encode("utf-8"))
        except OSError as e:
            raise StorageError(f"pointer update failed for {owner_id}: {e}") from e
        verbose(_LOG, "pointer_set", owner_id=owner_id, key=key[:8])

    def save(self, entry: CacheEntry) -> None:
        """Write the entry and make it current for its owner."""
        self.write_entry(entry)
        self.set_current(entry.owner_id, entry.key)

    # ------------------------------------------------------------------
    # Deletes and scans
    # ------------------------------------------------------------------

    def delete(self, key: str) -> bool:
        """
        Remove one entry. Returns False if it did not exist.

        Owner pointers referencing the key are left in place and read as
        misses afterwards.
        """
        self.initialize()
        with self._key_locks.hold(key):
            try:
                removed = _unlink(self._meta_path(key))
                self._memory.discard(key)
                _unlink(self._blob_path(key))
            except OSError as e:
                raise StorageError(f"delete failed for {key[:8]}: {e}") from e
        if removed:
            verbose(_LOG, "entry_deleted", key=key[:8])
        return removed

    def iter_infos(self) -> Iterator[EntryInfo]:
        """Yield metadata for every entry; entries deleted mid-scan are skipped."""
        self.initialize()
        try:
            shards = sorted(p for p in self._entries.iterdir() if p.is_dir())
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"scan failed: {e}") from e

        for shard in shards:
            for meta_path in sorted(shard.glob("*.json")):
                try:
                    meta = self._read_json(meta_path)
                except StorageError as e:
                    warn(_LOG, "entry_unreadable", file=meta_path.name, error=e.message)
                    continue
                if meta is not None:
                    yield EntryInfo.from_metadata(meta)

    def iter_pointers(self) -> Iterator[Tuple[str, str]]:
        """Yield (owner_id, key) for every current pointer."""
        self.initialize()
        try:
            shards = sorted(p for p in self._owners.iterdir() if p.is_dir())
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"scan failed: {e}") from e

        for shard in shards:
            for pointer_path in sorted(shard.glob("*.json")):
                try:
                    pointer = self._read_json(pointer_path)
                except StorageError as e:
                    warn(_LOG, "pointer_unreadable", file=pointer_path.name, error=e.message)
                    continue
                if pointer is not None:
                    yield str(pointer["owner_id"]), str(pointer["key"])
