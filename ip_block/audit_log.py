"""Bounded newest-first log of blocked checkout attempts."""
from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional

from ip_block.store import KeyValueStore
from ip_block.utils import format_site_time, from_epoch, sanitize_email, sanitize_url, trim_words

LOGGER = logging.getLogger(__name__)

DEFAULT_LOG_LIMIT = 500


@dataclass
class LogEntry:
    time: str
    timestamp: int
    ip: str
    attempts: int
    user_agent: str = ""
    email: str = ""
    url: str = ""

    @classmethod
    def capture(
        cls,
        *,
        ip: str,
        attempts: int,
        user_agent: Optional[str] = None,
        email: Optional[str] = None,
        url: Optional[str] = None,
        timezone_name: str = "UTC",
        now: Optional[float] = None,
    ) -> "LogEntry":
        """Build an entry from raw request values, sanitizing each of them."""

        now = time.time() if now is None else now
        return cls(
            time=format_site_time(from_epoch(now), timezone_name),
            timestamp=int(now),
            ip=ip,
            attempts=int(attempts),
            user_agent=trim_words(user_agent, 20),
            email=sanitize_email(email),
            url=sanitize_url(url),
        )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "LogEntry":
        def _int(value: Any) -> int:
            try:
                return int(value)
            except (TypeError, ValueError):
                return 0

        def _str(value: Any) -> str:
            return value if isinstance(value, str) else ""

        return cls(
            time=_str(raw.get("time")),
            timestamp=_int(raw.get("timestamp")),
            ip=_str(raw.get("ip")),
            attempts=_int(raw.get("attempts")),
            user_agent=_str(raw.get("user_agent")),
            email=_str(raw.get("email")),
            url=_str(raw.get("url")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AuditLog:
    """Stores blocked-attempt entries under one store key, newest first.

    Every operation reads the whole list and writes it back, so concurrent
    writers can lose updates. Positions are only meaningful for the listing
    they were read from.
    """

    def __init__(self, store: KeyValueStore, key: str = "ip_block_logs", limit: int = DEFAULT_LOG_LIMIT) -> None:
        self.store = store
        self.key = key
        self.limit = limit

    def list(self) -> List[LogEntry]:
        raw = self.store.get(self.key)
        if not isinstance(raw, list):
            if raw is not None:
                LOGGER.warning("audit log storage is not a list; treating as empty")
            return []
        return [LogEntry.from_dict(item) for item in raw if isinstance(item, Mapping)]

    def _save(self, entries: List[LogEntry]) -> None:
        self.store.set(self.key, [entry.to_dict() for entry in entries])

    def record(self, entry: LogEntry) -> None:
        entries = [entry, *self.list()]
        self._save(entries[: self.limit])

    def remove_by_address(self, client_ip: str) -> int:
        """Drop every entry for ``client_ip``; return how many were removed."""

        entries = self.list()
        kept = [entry for entry in entries if entry.ip != client_ip]
        removed = len(entries) - len(kept)
        if removed:
            self._save(kept)
        return removed

    def remove_by_index(self, index: int) -> bool:
        entries = self.list()
        if index < 0 or index >= len(entries):
            return False
        del entries[index]
        self._save(entries)
        return True
