#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Test Response Cache
TTL expiry, capacity bounds, statistics, concurrency and snapshots
"""

import json
import logging
import threading
import time
import pytest
import sys
from pathlib import Path
from datetime import timedelta

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tappmcp.optimization.cache_manager import TTLResponseCache, CacheEntry
from tappmcp.optimization.snapshot import SnapshotStore
from tappmcp.utils.config import Config
from tappmcp.utils.errors import InputError
from tappmcp.utils.helpers import estimate_size


class FakeClock:
    """Manually advanced time source"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class TestCacheEntry:
    """Test cache entry records"""

    def test_expiry_boundary(self):
        entry = CacheEntry(key="k", value="v", created_at=0.0, expires_at=10.0, size_hint=3)
        assert not entry.is_expired(9.999)
        assert entry.is_expired(10.0)

    def test_record_round_trip(self):
        entry = CacheEntry(key="k", value={"a": 1}, created_at=1.0, expires_at=2.0,
                           size_hint=8, last_accessed=1.5, hit_count=3)
        assert CacheEntry.from_record(entry.to_record()) == entry

    def test_malformed_records(self):
        with pytest.raises(KeyError):
            CacheEntry.from_record({"key": "k"})
        with pytest.raises(TypeError):
            CacheEntry.from_record(["k", "v"])
        with pytest.raises(ValueError):
            CacheEntry.from_record({"key": "k", "value": 1, "created_at": "soon", "expires_at": 1})

    def test_missing_size_hint_is_estimated(self):
        entry = CacheEntry.from_record({"key": "k", "value": "abc", "created_at": 1, "expires_at": 2})
        assert entry.size_hint == estimate_size("abc")


class TestBasicOperations:
    """Test get / set / invalidate"""

    def setup_method(self):
        self.clock = FakeClock()
        self.cache = TTLResponseCache(max_entries=10, max_bytes=10000, default_ttl=60, clock=self.clock)

    def test_set_then_get_returns_same_object(self):
        value = {"answer": [1, 2, 3]}
        assert self.cache.set("k", value) is True
        assert self.cache.get("k") is value

    def test_miss_returns_default(self):
        assert self.cache.get("missing") is None
        assert self.cache.get("missing", "fallback") == "fallback"
        assert self.cache.stats().miss_count == 2

    def test_invalidate(self):
        self.cache.set("k", "v")
        assert self.cache.invalidate("k") is True
        assert self.cache.invalidate("k") is False
        assert self.cache.get("k") is None
        assert self.cache.stats().total_bytes == 0

    def test_contains_and_len(self):
        self.cache.set("a", 1)
        self.cache.set("b", 2, ttl=5)
        assert "a" in self.cache
        assert len(self.cache) == 2

        self.clock.advance(5)
        assert "b" not in self.cache
        assert len(self.cache) == 1

    def test_hit_updates_entry_tracking(self):
        self.cache.set("k", "v")
        self.clock.advance(3)
        self.cache.get("k")
        self.cache.get("k")
        stats = self.cache.stats()
        assert stats.hit_count == 2
        assert stats.miss_count == 0
        assert stats.hit_rate == 1.0

    def test_get_or_set(self):
        calls = []

        def factory():
            calls.append(1)
            return "computed"

        assert self.cache.get_or_set("k", factory) == "computed"
        assert self.cache.get_or_set("k", factory) == "computed"
        assert len(calls) == 1

    def test_clear_keeps_counters(self):
        self.cache.set("k", "v")
        self.cache.get("k")
        self.cache.clear()
        stats = self.cache.stats()
        assert stats.entry_count == 0
        assert stats.total_bytes == 0
        assert stats.hit_count == 1

    def test_reset_keeps_entries(self):
        self.cache.set("k", "v")
        self.cache.get("k")
        self.cache.get("other")
        self.cache.reset()
        stats = self.cache.stats()
        assert stats.hit_count == 0
        assert stats.miss_count == 0
        assert stats.entry_count == 1
        assert self.cache.get("k") == "v"

    def test_stats_to_dict(self):
        data = self.cache.stats().to_dict()
        assert data["entry_count"] == 0
        assert data["hit_rate"] == 0.0

    def test_top_hit_keys(self):
        for key in ["a", "b", "c"]:
            self.cache.set(key, key)
        for _ in range(3):
            self.cache.get("b")
        self.cache.get("c")

        stats = self.cache.stats()
        assert stats.top_hit_keys == ["b", "c", "a"]
        assert stats.to_dict()["top_hit_keys"] == ["b", "c", "a"]

    def test_top_hit_keys_limited_to_live_entries(self):
        for i in range(8):
            self.cache.set(f"k{i}", i, ttl=5 if i == 0 else 60)
            for _ in range(i + 1):
                self.cache.get(f"k{i}")
        self.cache.set("short", "x", ttl=1)
        for _ in range(20):
            self.cache.get("short")

        self.clock.advance(1)
        assert self.cache.stats().top_hit_keys == ["k7", "k6", "k5", "k4", "k3"]


class TestExpiry:
    """Test TTL handling"""

    def setup_method(self):
        self.clock = FakeClock()
        self.cache = TTLResponseCache(default_ttl=10, clock=self.clock)

    def test_entry_live_until_expires_at(self):
        self.cache.set("k", "v")
        self.clock.advance(9.999)
        assert self.cache.get("k") == "v"
        self.clock.advance(0.001)
        assert self.cache.get("k") is None

    def test_expired_get_removes_entry(self):
        self.cache.set("k", "v")
        self.clock.advance(10)
        assert self.cache.get("k") is None
        stats = self.cache.stats()
        assert stats.entry_count == 0
        assert stats.total_bytes == 0
        assert stats.expirations == 1
        assert stats.miss_count == 1

    def test_timedelta_ttl(self):
        self.cache.set("k", "v", ttl=timedelta(minutes=1))
        self.clock.advance(59)
        assert self.cache.get("k") == "v"
        self.clock.advance(1)
        assert self.cache.get("k") is None

    def test_short_ttl_with_real_clock(self):
        cache = TTLResponseCache(default_ttl=60)
        cache.set("k", "v", ttl=0.001)
        time.sleep(0.01)
        assert cache.get("k") is None

    def test_cleanup_expired(self):
        self.cache.set("a", 1, ttl=5)
        self.cache.set("b", 2, ttl=5)
        self.cache.set("c", 3, ttl=50)
        self.clock.advance(5)
        assert self.cache.cleanup_expired() == 2
        assert self.cache.stats().entry_count == 1

    @pytest.mark.parametrize("ttl", [0, -1, timedelta(0), "10", True, float("inf"), float("nan")])
    def test_invalid_call_ttl(self, ttl):
        with pytest.raises(InputError):
            self.cache.set("k", "v", ttl=ttl)
        assert "k" not in self.cache


class TestConstruction:
    """Test constructor validation"""

    @pytest.mark.parametrize("kwargs", [
        {"max_entries": 0},
        {"max_entries": -5},
        {"max_bytes": 0},
        {"default_ttl": 0},
        {"default_ttl": -timedelta(seconds=1)},
        {"snapshot_every": 0},
        {"default_ttl": float("inf")},
    ])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(InputError):
            TTLResponseCache(**kwargs)

    def test_defaults(self):
        cache = TTLResponseCache()
        assert cache.max_entries == 1000
        assert cache.max_bytes == 50 * 1024 * 1024
        assert cache.default_ttl == 7 * 24 * 3600

    def test_from_config(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "cache:\n"
            "  max_entries: 5\n"
            "  max_bytes: 4096\n"
            "  default_ttl_seconds: 30\n"
            f"  snapshot_path: {tmp_path / 'snap.json'}\n",
            encoding="utf-8",
        )
        cache = TTLResponseCache.from_config(Config(str(config_file)))
        assert cache.max_entries == 5
        assert cache.max_bytes == 4096
        assert cache.default_ttl == 30
        cache.set("k", "v")
        cache.close()
        assert (tmp_path / "snap.json").exists()

    def test_from_config_rejects_invalid_values(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("cache:\n  max_entries: 0\n  snapshot_path: null\n", encoding="utf-8")
        with pytest.raises(InputError):
            TTLResponseCache.from_config(Config(str(config_file)))


class TestCapacity:
    """Test entry and byte bounds"""

    def setup_method(self):
        self.clock = FakeClock()

    def test_max_entries_evicts_oldest(self):
        cache = TTLResponseCache(max_entries=3, clock=self.clock)
        for key in ["a", "b", "c", "d"]:
            cache.set(key, key)
            self.clock.advance(1)
        assert len(cache) == 3
        assert "a" not in cache
        assert cache.keys() == ["b", "c", "d"]
        assert cache.stats().evictions == 1

    def test_overwrite_counts_as_new_insertion(self):
        cache = TTLResponseCache(max_entries=3, clock=self.clock)
        for key in ["a", "b", "c"]:
            cache.set(key, key)
        cache.set("a", "again")
        cache.set("d", "d")
        assert cache.keys() == ["c", "a", "d"]
        assert cache.get("a") == "again"

    def test_overwrite_does_not_double_count_bytes(self):
        cache = TTLResponseCache(clock=self.clock)
        cache.set("k", "x" * 8)
        cache.set("k", "x" * 8)
        stats = cache.stats()
        assert stats.entry_count == 1
        assert stats.total_bytes == estimate_size("x" * 8)

    def test_max_bytes_evicts_oldest(self):
        # Each value is 10 bytes once JSON-quoted
        cache = TTLResponseCache(max_bytes=20, clock=self.clock)
        cache.set("a", "x" * 8)
        cache.set("b", "y" * 8)
        cache.set("c", "z" * 8)
        assert cache.keys() == ["b", "c"]
        assert cache.stats().total_bytes == 20

    def test_oversize_value_rejected(self, caplog):
        cache = TTLResponseCache(max_bytes=10, clock=self.clock)
        cache.set("small", "abc")
        with caplog.at_level(logging.WARNING, logger="tappmcp.cache_manager"):
            assert cache.set("big", "x" * 20) is False
        assert "big" not in cache
        assert cache.keys() == ["small"]
        assert cache.stats().total_bytes == estimate_size("abc")
        assert "Refusing to cache" in caplog.text

    def test_expired_entries_purged_before_live_eviction(self):
        cache = TTLResponseCache(max_entries=2, clock=self.clock)
        cache.set("old", 1, ttl=5)
        cache.set("live", 2, ttl=100)
        self.clock.advance(10)
        cache.set("new", 3)
        assert cache.keys() == ["live", "new"]
        stats = cache.stats()
        assert stats.evictions == 0
        assert stats.expirations == 1


class TestConcurrency:
    """Test thread safety"""

    def test_parallel_writers_and_readers(self):
        cache = TTLResponseCache(max_entries=50, max_bytes=2000)
        gets_per_thread = 200
        errors = []

        def worker(worker_id):
            try:
                for i in range(gets_per_thread):
                    key = f"{worker_id}-{i % 30}"
                    cache.set(key, {"worker": worker_id, "i": i})
                    cache.get(key)
            except Exception as e:  # pragma: no cover
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        stats = cache.stats()
        assert stats.entry_count <= 50
        assert stats.total_bytes <= 2000
        assert stats.hit_count + stats.miss_count == 8 * gets_per_thread

        # Byte accounting matches the surviving entries
        total = sum(estimate_size(cache.get(key)) for key in cache.keys())
        assert total == stats.total_bytes

    def test_concurrent_writers_to_distinct_keys(self):
        cache = TTLResponseCache(max_entries=400)
        results = []
        lock = threading.Lock()

        def writer(worker_id):
            outcomes = [cache.set(f"{worker_id}-{i}", (worker_id, i)) for i in range(50)]
            with lock:
                results.extend(outcomes)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 400
        assert all(results)
        for worker_id in range(8):
            for i in range(50):
                assert cache.get(f"{worker_id}-{i}") == (worker_id, i)
        assert cache.stats().entry_count == 400
        assert cache.stats().evictions == 0


class TestSnapshots:
    """Test snapshot persistence"""

    def setup_method(self):
        self.clock = FakeClock()

    def test_snapshot_after_every_nth_set(self, tmp_path):
        store = SnapshotStore(tmp_path / "snap.json")
        cache = TTLResponseCache(snapshot_store=store, snapshot_every=3, clock=self.clock)

        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.wait_for_snapshots(timeout=5)
        assert not store.exists()

        cache.set("c", 3)
        assert cache.wait_for_snapshots(timeout=5)
        assert sorted(r["key"] for r in store.load()) == ["a", "b", "c"]

        cache.set("d", 4)
        assert cache.wait_for_snapshots(timeout=5)
        assert len(store.load()) == 3
        assert cache.stats().snapshot_writes == 1

    def test_entries_survive_restart(self, tmp_path):
        store = SnapshotStore(tmp_path / "snap.json")
        with TTLResponseCache(snapshot_store=store, clock=self.clock) as cache:
            cache.set("k", {"docs": "text"})

        restored = TTLResponseCache(snapshot_store=store, clock=self.clock)
        assert restored.get("k") == {"docs": "text"}
        assert restored.stats().total_bytes == estimate_size({"docs": "text"})

    def test_expired_records_skipped_on_hydration(self, tmp_path):
        store = SnapshotStore(tmp_path / "snap.json")
        with TTLResponseCache(snapshot_store=store, clock=self.clock) as cache:
            cache.set("short", 1, ttl=10)
            cache.set("long", 2, ttl=1000)

        self.clock.advance(100)
        restored = TTLResponseCache(snapshot_store=store, clock=self.clock)
        assert restored.keys() == ["long"]

    def test_hydration_respects_capacity(self, tmp_path):
        store = SnapshotStore(tmp_path / "snap.json")
        with TTLResponseCache(snapshot_store=store, clock=self.clock) as cache:
            for key in ["a", "b", "c", "d"]:
                cache.set(key, key)
                self.clock.advance(1)

        restored = TTLResponseCache(max_entries=2, snapshot_store=store, clock=self.clock)
        assert restored.keys() == ["c", "d"]

    def test_malformed_records_skipped(self, tmp_path):
        path = tmp_path / "snap.json"
        path.write_text(json.dumps([
            {"key": "good", "value": "v", "created_at": 1000, "expires_at": 5000, "size_hint": 3},
            {"key": "no-value"},
            "not a record",
        ]), encoding="utf-8")

        cache = TTLResponseCache(snapshot_store=SnapshotStore(path), clock=self.clock)
        assert cache.keys() == ["good"]

    def test_corrupt_snapshot_yields_empty_cache(self, tmp_path, caplog):
        path = tmp_path / "snap.json"
        path.write_text("{not json", encoding="utf-8")

        with caplog.at_level(logging.WARNING, logger="tappmcp.cache_manager"):
            cache = TTLResponseCache(snapshot_store=SnapshotStore(path), clock=self.clock)

        assert len(cache) == 0
        assert "empty cache" in caplog.text

    def test_write_failure_is_logged_not_raised(self, tmp_path, caplog):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")
        cache = TTLResponseCache(snapshot_store=SnapshotStore(blocker / "snap.json"), clock=self.clock)

        with caplog.at_level(logging.WARNING, logger="tappmcp.cache_manager"):
            cache.set("k", "v")
            assert cache.flush() is False

        assert cache.get("k") == "v"
        assert cache.stats().snapshot_failures == 1
        assert "snapshot" in caplog.text.lower()

    def test_non_json_values_left_out_of_snapshot(self, tmp_path):
        store = SnapshotStore(tmp_path / "snap.json")
        cache = TTLResponseCache(snapshot_store=store, clock=self.clock)
        cache.set("object", object())
        cache.set("plain", "text")
        assert cache.flush() is True
        assert [r["key"] for r in store.load()] == ["plain"]

    def test_flush_without_store(self):
        cache = TTLResponseCache(clock=self.clock)
        assert cache.flush() is False

    def test_close_is_idempotent(self, tmp_path):
        store = SnapshotStore(tmp_path / "snap.json")
        cache = TTLResponseCache(snapshot_store=store, clock=self.clock)
        cache.set("k", "v")
        cache.close()
        cache.close()
        assert [r["key"] for r in store.load()] == ["k"]
