"""
Tests for CacheStore and the BlobLRU memory tier.

Tests cover:
- Lazy, idempotent initialization
- write/read round trip with metadata
- Missing entries and pointers read as None
- Owner pointers, including pointers to evicted entries
- delete() removes metadata, blob and memory copy
- Atomic writes leave no temp files and never expose partial audio
- Corrupt metadata raises StorageError (and is skipped by scans)
- BlobLRU eviction order and the disabled tier
"""
import threading
from pathlib import Path

import pytest

from voice_cache.cache.fingerprint import fingerprint, text_hash
from voice_cache.cache.memory import BlobLRU
from voice_cache.cache.models import CacheEntry, VoiceConfig
from voice_cache.cache.store import CacheStore
from voice_cache.core.errors import StorageError


def make_entry(owner_id="msg_1", text="Hello", audio=b"ID3-hello", created_at=1000.0, vc=None):
    vc = vc or VoiceConfig()
    return CacheEntry(
        key=fingerprint(text, vc),
        owner_id=owner_id,
        audio_bytes=audio,
        text_hash=text_hash(text),
        voice_config=vc,
        created_at=created_at,
        generation_duration_ms=120.0,
    )


@pytest.fixture
def store(temp_store_dir):
    return CacheStore(base_dir=temp_store_dir, memory_max_items=8, clock=lambda: 5000.0)


class TestInitialization:
    """Tests for store layout creation."""

    def test_initialize_creates_layout(self, temp_store_dir):
        store = CacheStore(base_dir=Path(temp_store_dir) / "nested")
        assert store.initialized is False
        store.initialize()
        store.initialize()
        assert store.initialized is True
        for name in ("blobs", "entries", "owners"):
            assert (Path(temp_store_dir) / "nested" / name).is_dir()

    def test_reads_initialize_lazily(self, temp_store_dir):
        store = CacheStore(base_dir=temp_store_dir)
        assert store.get_entry("ab" * 32) is None
        assert store.initialized is True

    def test_concurrent_initialize(self, temp_store_dir):
        store = CacheStore(base_dir=temp_store_dir)
        threads = [threading.Thread(target=store.initialize) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert store.initialized is True


class TestReadWrite:
    """Tests for entry persistence."""

    def test_round_trip(self, store):
        entry = make_entry()
        store.write_entry(entry)

        loaded = store.get_entry(entry.key)
        assert loaded == entry
        assert store.has_entry(entry.key)

    def test_info_has_no_audio(self, store):
        entry = make_entry()
        store.write_entry(entry)

        info = store.get_info(entry.key)
        assert info.key == entry.key
        assert info.size_bytes == len(entry.audio_bytes)
        assert info.generation_duration_ms == 120.0
        assert not hasattr(info, "audio_bytes")

    def test_missing_is_none(self, store):
        assert store.get_entry("00" * 32) is None
        assert store.get_info("00" * 32) is None
        assert store.get_current("nobody") is None
        assert store.get_current_key("nobody") is None

    def test_files_are_sharded(self, store, temp_store_dir):
        entry = make_entry()
        store.write_entry(entry)
        shard = entry.key[:2]
        assert (Path(temp_store_dir) / "blobs" / shard / f"{entry.key}.mp3").read_bytes() == entry.audio_bytes
        assert (Path(temp_store_dir) / "entries" / shard / f"{entry.key}.json").exists()

    def test_no_temp_files_left(self, store, temp_store_dir):
        for i in range(5):
            store.save(make_entry(owner_id=f"msg_{i}", text=f"text {i}"))
        leftovers = [p for p in Path(temp_store_dir).rglob("*.tmp")]
        assert leftovers == []

    def test_overwrite_same_key(self, store):
        first = make_entry(audio=b"ID3-one")
        store.write_entry(first)
        store.write_entry(make_entry(audio=b"ID3-two"))
        assert store.get_entry(first.key).audio_bytes == b"ID3-two"

    def test_slow_reader_cannot_restore_replaced_audio(self, store, monkeypatch):
        old = make_entry(audio=b"ID3-old")
        store.write_entry(old)
        store.memory.clear()

        writer = threading.Thread(target=store.write_entry, args=(make_entry(audio=b"ID3-new"),))
        original_put = store.memory.put

        def put_after_rewrite(key, data):
            # The reader has the old bytes in hand; let the rewrite race it
            if data == b"ID3-old" and writer.ident is None:
                writer.start()
                writer.join(timeout=0.3)
            original_put(key, data)

        monkeypatch.setattr(store.memory, "put", put_after_rewrite)

        store.get_entry(old.key)
        writer.join(timeout=5)

        assert not writer.is_alive()
        assert store.get_entry(old.key).audio_bytes == b"ID3-new"
        assert store.memory.get(old.key) == b"ID3-new"

    def test_read_from_disk_without_memory(self, temp_store_dir):
        writer = CacheStore(base_dir=temp_store_dir, memory_max_items=0)
        entry = make_entry()
        writer.write_entry(entry)

        reader = CacheStore(base_dir=temp_store_dir, memory_max_items=0)
        assert reader.get_entry(entry.key).audio_bytes == entry.audio_bytes

    def test_unicode_owner_ids(self, store):
        entry = make_entry(owner_id="lección/intro 1")
        store.save(entry)
        assert store.get_current("lección/intro 1").key == entry.key


class TestPointers:
    """Tests for owner -> key pointers."""

    def test_save_sets_pointer(self, store):
        entry = make_entry()
        store.save(entry)
        assert store.get_current_key("msg_1") == entry.key
        assert store.get_current("msg_1").audio_bytes == entry.audio_bytes
        assert store.get_current_info("msg_1").key == entry.key

    def test_repoint(self, store):
        a = make_entry(text="A")
        b = make_entry(text="B")
        store.save(a)
        store.save(b)
        assert store.get_current_key("msg_1") == b.key
        # The previous entry stays in the store until evicted
        assert store.has_entry(a.key)

    def test_dangling_pointer_reads_as_miss(self, store):
        entry = make_entry()
        store.save(entry)
        store.delete(entry.key)

        assert store.get_current_key("msg_1") == entry.key
        assert store.get_current("msg_1") is None
        assert store.get_current_info("msg_1") is None

    def test_iter_pointers(self, store):
        store.save(make_entry(owner_id="a", text="A"))
        store.save(make_entry(owner_id="b", text="B"))
        owners = dict(store.iter_pointers())
        assert set(owners) == {"a", "b"}


class TestDelete:
    """Tests for delete()."""

    def test_delete_removes_everything(self, store, temp_store_dir):
        entry = make_entry()
        store.write_entry(entry)
        assert len(store.memory) == 1

        assert store.delete(entry.key) is True
        assert store.get_entry(entry.key) is None
        assert len(store.memory) == 0
        assert not list(Path(temp_store_dir).rglob(f"{entry.key}.*"))

    def test_delete_missing_returns_false(self, store):
        assert store.delete("ff" * 32) is False

    def test_blob_vanished_reads_as_miss(self, store, temp_store_dir):
        """Metadata without a blob (delete in progress) is a clean miss."""
        entry = make_entry()
        store.write_entry(entry)
        store.memory.clear()
        (Path(temp_store_dir) / "blobs" / entry.key[:2] / f"{entry.key}.mp3").unlink()

        assert store.get_entry(entry.key) is None

    def test_concurrent_reads_and_deletes(self, store):
        """Readers see full audio or None, never partial bytes."""
        entries = [make_entry(owner_id=f"o{i}", text=f"t{i}", audio=b"ID3" + bytes([i]) * 4096) for i in range(20)]
        for e in entries:
            store.write_entry(e)
        store.memory.clear()

        bad = []

        def reader():
            for e in entries:
                got = store.get_entry(e.key)
                if got is not None and got.audio_bytes != e.audio_bytes:
                    bad.append(e.key)

        def deleter():
            for e in entries:
                store.delete(e.key)

        threads = [threading.Thread(target=reader) for _ in range(4)] + [threading.Thread(target=deleter)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert bad == []
        assert list(store.iter_infos()) == []


class TestCorruption:
    """Tests for unreadable metadata."""

    def test_corrupt_metadata_raises(self, store, temp_store_dir):
        entry = make_entry()
        store.write_entry(entry)
        (Path(temp_store_dir) / "entries" / entry.key[:2] / f"{entry.key}.json").write_text("{not json")

        with pytest.raises(StorageError):
            store.get_entry(entry.key)

    def test_scan_skips_corrupt_metadata(self, store, temp_store_dir):
        good = make_entry(text="good")
        bad = make_entry(text="bad")
        store.write_entry(good)
        store.write_entry(bad)
        (Path(temp_store_dir) / "entries" / bad.key[:2] / f"{bad.key}.json").write_text("garbage")

        keys = [i.key for i in store.iter_infos()]
        assert keys == [good.key]


class TestBlobLRU:
    """Tests for the in-memory read tier."""

    def test_get_put(self):
        lru = BlobLRU(max_items=2)
        lru.put("a", b"1")
        assert lru.get("a") == b"1"
        assert lru.get("b") is None

    def test_evicts_least_recently_used(self):
        lru = BlobLRU(max_items=2)
        lru.put("a", b"1")
        lru.put("b", b"2")
        lru.get("a")
        lru.put("c", b"3")

        assert lru.get("b") is None
        assert lru.get("a") == b"1"
        assert lru.get("c") == b"3"

    def test_disabled_tier(self):
        lru = BlobLRU(max_items=0)
        lru.put("a", b"1")
        assert len(lru) == 0
        assert lru.get("a") is None

    def test_discard_and_clear(self):
        lru = BlobLRU(max_items=4)
        lru.put("a", b"1")
        lru.put("b", b"2")
        assert lru.discard("a") is True
        assert lru.discard("a") is False
        assert lru.clear() == 1

    def test_stats(self):
        lru = BlobLRU(max_items=4)
        lru.put("a", b"1")
        lru.get("a")
        lru.get("missing")
        stats = lru.stats()
        assert stats == {"size": 1, "max_items": 4, "hits": 1, "misses": 1}
