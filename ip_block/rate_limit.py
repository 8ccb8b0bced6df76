"""Per-address checkout attempt counter backed by a TTL store."""
from __future__ import annotations

import hashlib

from ip_block.store import KeyValueStore, coerce_count

KEY_PREFIX = "ip_block_count_"


def counter_key(client_ip: str) -> str:
    return KEY_PREFIX + hashlib.md5(client_ip.encode("utf-8")).hexdigest()


class AttemptCounter:
    """Counts attempts per client IP within a window that slides on every increment."""

    def __init__(self, store: KeyValueStore, window_seconds: int) -> None:
        self.store = store
        self.window = window_seconds

    def increment(self, client_ip: str) -> int:
        return self.store.incr(counter_key(client_ip), ttl=self.window)

    def get_count(self, client_ip: str) -> int:
        return coerce_count(self.store.get(counter_key(client_ip)))

    def reset(self, client_ip: str) -> None:
        self.store.delete(counter_key(client_ip))
