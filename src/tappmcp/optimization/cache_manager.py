#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Response cache manager
Bounded TTL cache for tool responses with FIFO eviction and JSON snapshots
"""

import json
import logging
import math
import threading
import time
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, asdict, field
from typing import Any, Callable, Dict, List, Optional

from .snapshot import SnapshotStore
from ..utils.config import Config
from ..utils.constants import (
    CACHE_MAX_ENTRIES,
    CACHE_MAX_BYTES,
    CACHE_DEFAULT_TTL_SECONDS,
    CACHE_SNAPSHOT_EVERY,
    CACHE_TOP_HIT_KEYS,
    ERROR_MESSAGES,
)
from ..utils.errors import InputError, PersistenceWarning
from ..utils.helpers import Duration, duration_to_seconds, estimate_size

_MISSING = object()


@dataclass
class CacheEntry:
    """Cache entry"""
    key: str
    value: Any
    created_at: float
    expires_at: float
    size_hint: int
    last_accessed: float = 0.0
    hit_count: int = 0

    def is_expired(self, now: float) -> bool:
        """Entries are dead from expires_at onward"""
        return now >= self.expires_at

    def to_record(self) -> Dict[str, Any]:
        """Convert to snapshot record; the value is not copied"""
        return {
            'key': self.key,
            'value': self.value,
            'created_at': self.created_at,
            'expires_at': self.expires_at,
            'size_hint': self.size_hint,
            'last_accessed': self.last_accessed,
            'hit_count': self.hit_count,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'CacheEntry':
        """
        Create entry from snapshot record

        Raises:
            KeyError, TypeError, ValueError: Malformed record
        """
        if not isinstance(record, dict):
            raise TypeError(f"record must be a mapping, got {type(record).__name__}")

        key = record['key']
        if not isinstance(key, str):
            raise TypeError("record key must be a string")

        value = record['value']
        created_at = float(record['created_at'])
        expires_at = float(record['expires_at'])
        if not (math.isfinite(created_at) and math.isfinite(expires_at)):
            raise ValueError("record timestamps must be finite")

        size_hint = record.get('size_hint')
        size_hint = estimate_size(value) if size_hint is None else int(size_hint)
        if size_hint < 0:
            raise ValueError("record size_hint must not be negative")

        return cls(
            key=key,
            value=value,
            created_at=created_at,
            expires_at=expires_at,
            size_hint=size_hint,
            last_accessed=float(record.get('last_accessed', created_at)),
            hit_count=int(record.get('hit_count', 0)),
        )


@dataclass
class CacheStats:
    """Cache statistics"""
    entry_count: int = 0
    total_bytes: int = 0
    hit_count: int = 0
    miss_count: int = 0
    evictions: int = 0
    expirations: int = 0
    snapshot_writes: int = 0
    snapshot_failures: int = 0
    # Live keys with the most hits, most-hit first
    top_hit_keys: List[str] = field(default_factory=list)

    @property
    def hit_rate(self) -> float:
        """Hits over all lookups"""
        lookups = self.hit_count + self.miss_count
        return self.hit_count / lookups if lookups > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        data = asdict(self)
        data['hit_rate'] = self.hit_rate
        return data


def _validate_positive_int(value: Any, message_key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InputError(ERROR_MESSAGES[message_key].format(value))
    return value


def validate_ttl(ttl: Any) -> float:
    """
    Convert a TTL to float seconds

    Raises:
        InputError: Not a positive, finite duration
    """
    try:
        seconds = duration_to_seconds(ttl)
    except TypeError as e:
        raise InputError(ERROR_MESSAGES['invalid_ttl'].format(ttl)) from e
    # Rejects NaN and infinity as well as zero and negative durations
    if not (seconds > 0 and math.isfinite(seconds)):
        raise InputError(ERROR_MESSAGES['invalid_ttl'].format(ttl))
    return seconds


class TTLResponseCache:
    """
    Bounded TTL response cache

    Entries expire lazily: a lookup at or after expires_at is a miss and
    removes the entry. When a write would exceed max_entries or max_bytes,
    expired entries are purged first, then live entries are evicted
    oldest-insertion first.

    All state sits behind one re-entrant lock. Snapshots are captured under
    the lock and written by a single background worker, so disk writes never
    block lookups.
    """

    def __init__(self, max_entries: int = CACHE_MAX_ENTRIES,
                 max_bytes: int = CACHE_MAX_BYTES,
                 default_ttl: Duration = CACHE_DEFAULT_TTL_SECONDS,
                 snapshot_store: Optional[SnapshotStore] = None,
                 snapshot_every: int = CACHE_SNAPSHOT_EVERY,
                 clock: Callable[[], float] = time.time):
        """
        Initialize response cache

        Args:
            max_entries: Maximum number of entries
            max_bytes: Maximum total size_hint of all entries
            default_ttl: Entry lifetime when set() gets no ttl (seconds or timedelta)
            snapshot_store: Snapshot persistence, no persistence if None
            snapshot_every: Snapshot after every Nth successful set
            clock: Time source returning epoch seconds

        Raises:
            InputError: Invalid bound, TTL or snapshot interval
        """
        self.max_entries = _validate_positive_int(max_entries, 'invalid_max_entries')
        self.max_bytes = _validate_positive_int(max_bytes, 'invalid_max_bytes')
        self.default_ttl = validate_ttl(default_ttl)
        self.snapshot_every = _validate_positive_int(snapshot_every, 'invalid_snapshot_every')

        self.logger = logging.getLogger('tappmcp.cache_manager')
        self._clock = clock
        self._snapshot_store = snapshot_store

        self._entries: 'OrderedDict[str, CacheEntry]' = OrderedDict()
        self._total_bytes = 0
        self._stats = CacheStats()
        self._lock = threading.RLock()

        # Snapshot worker state
        self._writes_since_snapshot = 0
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Optional[Future] = None
        self._closed = False

        if self._snapshot_store is not None:
            self._hydrate()

    @classmethod
    def from_config(cls, config: Config, clock: Callable[[], float] = time.time) -> 'TTLResponseCache':
        """
        Build cache from configuration

        Args:
            config: Configuration object
            clock: Time source

        Returns:
            Configured TTLResponseCache
        """
        snapshot_path = config.get_snapshot_path()
        return cls(
            max_entries=config.cache.max_entries,
            max_bytes=config.cache.max_bytes,
            default_ttl=config.cache.default_ttl_seconds,
            snapshot_store=SnapshotStore(snapshot_path) if snapshot_path else None,
            snapshot_every=config.cache.snapshot_every,
            clock=clock,
        )

    # ==================== Lookup ====================

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get cache value

        Args:
            key: Request fingerprint
            default: Returned on a miss

        Returns:
            Stored value unchanged, or default if absent or expired
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.miss_count += 1
                return default

            now = self._clock()
            if entry.is_expired(now):
                self._remove_entry(key)
                self._stats.expirations += 1
                self._stats.miss_count += 1
                return default

            entry.last_accessed = now
            entry.hit_count += 1
            self._stats.hit_count += 1
            return entry.value

    def get_or_set(self, key: str, factory: Callable[[], Any], ttl: Optional[Duration] = None) -> Any:
        """
        Read-through lookup

        The factory runs outside the lock; concurrent misses on the same key
        may both compute, and the later write wins.

        Args:
            key: Request fingerprint
            factory: Computes the value on a miss
            ttl: Lifetime for a newly stored value

        Returns:
            Cached or freshly computed value
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value

        value = factory()
        self.set(key, value, ttl)
        return value

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for entry in self._entries.values() if not entry.is_expired(now))

    def keys(self) -> List[str]:
        """Live keys, oldest insertion first"""
        with self._lock:
            now = self._clock()
            return [key for key, entry in self._entries.items() if not entry.is_expired(now)]

    # ==================== Mutation ====================

    def set(self, key: str, value: Any, ttl: Optional[Duration] = None) -> bool:
        """
        Set cache value

        Args:
            key: Request fingerprint
            value: Payload, stored as-is
            ttl: Lifetime (seconds or timedelta), default_ttl if None

        Returns:
            Whether the value was stored; False only when the value alone
            exceeds max_bytes

        Raises:
            InputError: ttl is not a positive duration
        """
        ttl_seconds = self.default_ttl if ttl is None else validate_ttl(ttl)
        size_hint = estimate_size(value)

        if size_hint > self.max_bytes:
            self.logger.warning(
                f"Refusing to cache {key!r}: {size_hint} bytes exceeds max_bytes={self.max_bytes}"
            )
            return False

        with self._lock:
            now = self._clock()

            # Overwrite counts as a fresh insertion
            if key in self._entries:
                self._remove_entry(key)

            self._make_room(size_hint, now)

            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                created_at=now,
                expires_at=now + ttl_seconds,
                size_hint=size_hint,
                last_accessed=now,
            )
            self._total_bytes += size_hint

            if self._snapshot_store is not None:
                self._writes_since_snapshot += 1
                if self._writes_since_snapshot >= self.snapshot_every:
                    self._writes_since_snapshot = 0
                    self._submit_snapshot(self._capture_records(now))

        return True

    def invalidate(self, key: str) -> bool:
        """
        Remove cache entry

        Args:
            key: Request fingerprint

        Returns:
            Whether an entry was removed
        """
        with self._lock:
            if key in self._entries:
                self._remove_entry(key)
                return True
            return False

    def clear(self):
        """Drop all entries; counters are kept"""
        with self._lock:
            self._entries.clear()
            self._total_bytes = 0

    def cleanup_expired(self) -> int:
        """
        Physically remove expired entries

        Returns:
            Number of entries removed
        """
        with self._lock:
            return self._purge_expired(self._clock())

    # ==================== Statistics ====================

    def stats(self) -> CacheStats:
        """Snapshot of cache statistics"""
        with self._lock:
            now = self._clock()
            live = [entry for entry in self._entries.values() if not entry.is_expired(now)]
            # Stable sort keeps insertion order among equal hit counts
            live.sort(key=lambda e: e.hit_count, reverse=True)

            return CacheStats(
                entry_count=len(self._entries),
                total_bytes=self._total_bytes,
                hit_count=self._stats.hit_count,
                miss_count=self._stats.miss_count,
                evictions=self._stats.evictions,
                expirations=self._stats.expirations,
                snapshot_writes=self._stats.snapshot_writes,
                snapshot_failures=self._stats.snapshot_failures,
                top_hit_keys=[entry.key for entry in live[:CACHE_TOP_HIT_KEYS]],
            )

    def reset(self):
        """Zero all counters; entries are kept"""
        with self._lock:
            self._stats = CacheStats()

    # ==================== Internal bookkeeping ====================

    def _remove_entry(self, key: str):
        """Remove entry and release its bytes (lock held)"""
        entry = self._entries.pop(key)
        self._total_bytes -= entry.size_hint

    def _over_capacity(self, incoming_bytes: int) -> bool:
        return (len(self._entries) + 1 > self.max_entries
                or self._total_bytes + incoming_bytes > self.max_bytes)

    def _purge_expired(self, now: float) -> int:
        """Remove every expired entry (lock held)"""
        expired_keys = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired_keys:
            self._remove_entry(key)
        self._stats.expirations += len(expired_keys)
        return len(expired_keys)

    def _make_room(self, incoming_bytes: int, now: float):
        """Free space for one more entry of incoming_bytes (lock held)"""
        if not self._over_capacity(incoming_bytes):
            return

        self._purge_expired(now)

        while self._entries and self._over_capacity(incoming_bytes):
            key, entry = self._entries.popitem(last=False)
            self._total_bytes -= entry.size_hint
            self._stats.evictions += 1
            self.logger.debug(f"Evicted {key!r} ({entry.size_hint} bytes)")

    # ==================== Persistence ====================

    def _hydrate(self):
        """Load unexpired entries from the snapshot store"""
        try:
            records = self._snapshot_store.load()
        except PersistenceWarning as e:
            self.logger.warning(f"{e}; starting with an empty cache")
            return

        now = self._clock()
        entries = []
        skipped = 0
        for record in records:
            try:
                entry = CacheEntry.from_record(record)
            except (KeyError, TypeError, ValueError):
                skipped += 1
                continue
            if entry.is_expired(now) or entry.size_hint > self.max_bytes:
                skipped += 1
                continue
            entries.append(entry)

        # Restore insertion order so FIFO eviction keeps its meaning
        entries.sort(key=lambda e: e.created_at)

        with self._lock:
            for entry in entries:
                if entry.key in self._entries:
                    self._remove_entry(entry.key)
                self._make_room(entry.size_hint, now)
                self._entries[entry.key] = entry
                self._total_bytes += entry.size_hint

        self.logger.info(
            f"Hydrated {len(self._entries)} cache entries from {self._snapshot_store.path} "
            f"({skipped} skipped)"
        )

    def _capture_records(self, now: float) -> List[Dict[str, Any]]:
        """Records of all live entries (lock held)"""
        return [entry.to_record() for entry in self._entries.values() if not entry.is_expired(now)]

    def _submit_snapshot(self, records: List[Dict[str, Any]]) -> Optional[Future]:
        """Queue a snapshot write on the worker (lock held)"""
        if self._closed:
            return None
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='tappmcp-snapshot')
        self._pending = self._executor.submit(self._write_snapshot, records)
        return self._pending

    def _write_snapshot(self, records: List[Dict[str, Any]]) -> bool:
        """Write records to the snapshot store; failures are logged, not raised"""
        serializable = []
        for record in records:
            try:
                json.dumps(record['value'])
            except (TypeError, ValueError):
                self.logger.debug(f"Skipping non-JSON value for {record['key']!r} in snapshot")
                continue
            serializable.append(record)

        try:
            self._snapshot_store.save(serializable)
        except PersistenceWarning as e:
            self.logger.warning(str(e))
            with self._lock:
                self._stats.snapshot_failures += 1
            return False

        with self._lock:
            self._stats.snapshot_writes += 1
        return True

    def flush(self, wait: bool = True) -> bool:
        """
        Snapshot all live entries now

        Args:
            wait: Block until the write finished

        Returns:
            Whether the snapshot was written (True when queued without waiting);
            False when persistence is disabled or the write failed
        """
        if self._snapshot_store is None:
            return False

        with self._lock:
            records = self._capture_records(self._clock())
            self._writes_since_snapshot = 0
            future = self._submit_snapshot(records)

        if future is None:
            return self._write_snapshot(records)
        if wait:
            return future.result()
        return True

    def wait_for_snapshots(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the most recently queued snapshot finished

        Args:
            timeout: Seconds to wait, forever if None

        Returns:
            Result of that write, True when nothing was queued
        """
        with self._lock:
            pending = self._pending
        if pending is None:
            return True
        return pending.result(timeout=timeout)

    def close(self):
        """Write a final snapshot and stop the snapshot worker"""
        if self._closed:
            return

        self.flush(wait=True)

        with self._lock:
            self._closed = True
            executor, self._executor = self._executor, None

        if executor is not None:
            executor.shutdown(wait=True)

        self.logger.info("Response cache closed")

    def __enter__(self) -> 'TTLResponseCache':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
