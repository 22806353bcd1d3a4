"""
tests/test_cache.py
────────────────────
Behaviour shared by both cache stores, plus file-store persistence.
"""

import json
import threading
import time

import pytest

from miusage_feed.services.cache import (
    FileCacheStore,
    MemoryCacheStore,
    build_store,
)

from conftest import FakeClock


@pytest.fixture(params=["memory", "file"])
def any_store(request, tmp_path, clock):
    if request.param == "memory":
        return MemoryCacheStore(clock=clock)
    return FileCacheStore(tmp_path / "cache.json", clock=clock)


class TestStoreContract:
    def test_get_missing(self, any_store) -> None:
        assert any_store.get("nope") is None
        assert any_store.get_timestamp("nope") is None

    def test_set_get_and_timestamp(self, any_store, clock) -> None:
        assert any_store.set("k", {"a": 1, "b": [1, 2, 3]}, 60) is True
        assert any_store.get("k") == {"a": 1, "b": [1, 2, 3]}
        assert any_store.get_timestamp("k") == clock.now

    def test_expired_reads_as_missing(self, any_store, clock) -> None:
        any_store.set("k", "v", 60)
        clock.advance(60)
        assert any_store.get("k") is None
        assert any_store.get_timestamp("k") is None

    def test_expired_entry_kept_until_overwritten(self, any_store, clock) -> None:
        any_store.set("k", "old", 60)
        clock.advance(3600)
        entry = any_store.get_entry("k", include_expired=True)
        assert entry is not None
        assert entry.payload == "old"

        any_store.set("k", "new", 60)
        assert any_store.get("k") == "new"
        assert any_store.get_timestamp("k") == clock.now

    def test_no_ttl_never_expires(self, any_store, clock) -> None:
        any_store.set("k", "v", None)
        clock.advance(10**9)
        assert any_store.get("k") == "v"

    def test_delete_is_idempotent(self, any_store) -> None:
        any_store.set("k", "v", 60)
        any_store.delete("k")
        any_store.delete("k")
        assert any_store.get_entry("k", include_expired=True) is None

    def test_clear(self, any_store) -> None:
        any_store.set("a", 1, 60)
        any_store.set("b", 2, 60)
        any_store.clear()
        assert any_store.get("a") is None
        assert any_store.get("b") is None


class TestFileStore:
    def test_shared_between_instances(self, tmp_path) -> None:
        path = tmp_path / "shared" / "cache.json"
        clock = FakeClock()
        FileCacheStore(path, clock=clock).set("flag", True, 60)

        other = FileCacheStore(path, clock=clock)
        assert other.get("flag") is True

    def test_corrupt_file_reads_empty(self, tmp_path) -> None:
        path = tmp_path / "cache.json"
        path.write_text("{not json", encoding="utf-8")
        store = FileCacheStore(path)

        assert store.get("k") is None
        assert store.set("k", "v", 60) is True
        assert store.get("k") == "v"

    def test_malformed_entry_ignored(self, tmp_path) -> None:
        path = tmp_path / "cache.json"
        path.write_text(json.dumps({"k": {"unexpected": 1}}), encoding="utf-8")
        assert FileCacheStore(path).get("k") is None

    def test_unwritable_path_reports_failure(self, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = FileCacheStore(blocker / "cache.json")
        assert store.set("k", "v", 60) is False

    def test_concurrent_writers(self, tmp_path) -> None:
        store = FileCacheStore(tmp_path / "cache.json")

        def write(i: int) -> None:
            store.set(f"k{i}", i, 60)

        threads = [threading.Thread(target=write, args=(i,)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(store.get(f"k{i}") == i for i in range(10))

    def test_writer_in_another_instance_waits_for_lock(self, tmp_path) -> None:
        path = tmp_path / "cache.json"
        web = FileCacheStore(path)
        cli = FileCacheStore(path)

        with web._transaction():
            data = web._read()
            writer = threading.Thread(target=cli.set, args=("flag", True, 60))
            writer.start()
            time.sleep(0.2)
            assert writer.is_alive()

            data["payload"] = {"payload": {"x": 1}, "stored_at": time.time(), "ttl": 3600}
            web._write(data)

        writer.join(timeout=5)
        assert not writer.is_alive()
        assert web.get("payload") == {"x": 1}
        assert web.get("flag") is True

    def test_interleaved_instances_lose_no_keys(self, tmp_path) -> None:
        path = tmp_path / "cache.json"
        stores = [FileCacheStore(path) for _ in range(4)]

        def write(store: FileCacheStore, n: int) -> None:
            for i in range(10):
                store.set(f"s{n}-k{i}", i, 60)

        threads = [threading.Thread(target=write, args=(s, n)) for n, s in enumerate(stores)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        keys = json.loads(path.read_text(encoding="utf-8"))
        assert len(keys) == 40


def test_build_store(tmp_path) -> None:
    assert isinstance(build_store("memory", tmp_path / "x.json"), MemoryCacheStore)
    assert isinstance(build_store("file", tmp_path / "x.json"), FileCacheStore)
    with pytest.raises(ValueError, match="Unsupported cache backend"):
        build_store("redis", tmp_path / "x.json")
