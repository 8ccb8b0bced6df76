"""Key-value stores with per-key TTL used for counters, logs and action tokens."""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Optional, Protocol

import redis

LOGGER = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal store contract shared by every backend.

    ``ttl`` is in seconds; ``None`` keeps the value until it is deleted.
    """

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None: ...

    def add(self, key: str, value: Any, ttl: Optional[int] = None) -> bool: ...

    def delete(self, key: str) -> None: ...

    def incr(self, key: str, ttl: Optional[int] = None) -> int: ...


def coerce_count(value: Any) -> int:
    """Read a stored counter; anything that is not a non-negative int counts as 0."""

    if isinstance(value, bool):
        return 0
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0


@dataclass
class StoreEntry:
    value: Any
    expires_at: Optional[float]


class MemoryStore:
    """Thread-safe in-process store. State is not shared across workers.

    Expired entries are dropped when read, and all of them are swept on the
    first write after every ``sweep_interval`` seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.time, sweep_interval: float = 60) -> None:
        self._clock = clock
        self._store: Dict[str, StoreEntry] = {}
        self._lock = Lock()
        self._sweep_interval = sweep_interval
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def _sweep_expired(self) -> None:
        now = self._clock()
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now
        expired = [
            key
            for key, entry in self._store.items()
            if entry.expires_at is not None and entry.expires_at <= now
        ]
        for key in expired:
            del self._store[key]
        if expired:
            LOGGER.debug("swept %d expired entries", len(expired))

    def _live_entry(self, key: str) -> StoreEntry | None:
        entry = self._store.get(key)
        if not entry:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            self._store.pop(key, None)
            return None
        return entry

    def _expiry(self, ttl: Optional[int]) -> Optional[float]:
        return None if ttl is None else self._clock() + ttl

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._live_entry(key)
            return entry.value if entry else None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        with self._lock:
            self._sweep_expired()
            self._store[key] = StoreEntry(value=value, expires_at=self._expiry(ttl))

    def add(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        with self._lock:
            self._sweep_expired()
            if self._live_entry(key):
                return False
            self._store[key] = StoreEntry(value=value, expires_at=self._expiry(ttl))
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def incr(self, key: str, ttl: Optional[int] = None) -> int:
        with self._lock:
            self._sweep_expired()
            entry = self._live_entry(key)
            count = coerce_count(entry.value if entry else 0) + 1
            self._store[key] = StoreEntry(value=count, expires_at=self._expiry(ttl))
            return count


class RedisStore:
    """Store backed by Redis so every worker sees the same counters and log.

    Values are kept JSON-encoded. Undecodable values read as ``None``.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(redis.Redis.from_url(url))

    def get(self, key: str) -> Any | None:
        raw = self._client.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            LOGGER.warning("discarding undecodable value", extra={"action": key})
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self._client.set(key, json.dumps(value), ex=ttl)

    def add(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return bool(self._client.set(key, json.dumps(value), ex=ttl, nx=True))

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def incr(self, key: str, ttl: Optional[int] = None) -> int:
        try:
            with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                if ttl is not None:
                    pipe.expire(key, ttl)
                results = pipe.execute()
        except redis.exceptions.ResponseError:
            # Non-integer payload: start over from zero.
            LOGGER.warning("resetting corrupt counter", extra={"action": key})
            self.set(key, 1, ttl=ttl)
            return 1
        return int(results[0])


def build_store(redis_url: Optional[str]) -> KeyValueStore:
    """Pick the Redis backend when a URL is configured, else the memory store."""

    if redis_url:
        LOGGER.info("using redis store")
        return RedisStore.from_url(redis_url)
    LOGGER.info("using in-memory store")
    return MemoryStore()
