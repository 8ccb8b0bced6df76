"""One-time action tokens and the admin capability check."""
from __future__ import annotations

import hashlib
import hmac
import logging
import math
import secrets
import time
from typing import Callable, Optional

from ip_block.store import KeyValueStore

LOGGER = logging.getLogger(__name__)

ADMIN_TOKEN_HEADER = "X-Admin-Token"
NONCE_KEY_PREFIX = "ip_block_nonce_"


def check_admin_token(presented: Optional[str], expected: Optional[str]) -> bool:
    """Return ``True`` when ``presented`` matches the configured admin token."""

    if not expected or not presented:
        return False
    return secrets.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


def check_admin_credentials(
    username: Optional[str], password: Optional[str], expected_username: str, expected_token: Optional[str]
) -> bool:
    """Check HTTP Basic credentials, which browsers resend on page loads and form posts."""

    if username is None or not check_admin_token(password, expected_token):
        return False
    return secrets.compare_digest(username.encode("utf-8"), expected_username.encode("utf-8"))


class ActionTokens:
    """Issues tokens bound to an action name; each token verifies only once.

    A token stays valid for between half and the full ``lifetime_seconds``.
    Used tokens are remembered in the store until they would have expired.
    """

    def __init__(
        self,
        store: KeyValueStore,
        secret_key: str,
        lifetime_seconds: int = 86400,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._secret = secret_key.encode("utf-8")
        self._lifetime = max(lifetime_seconds, 2)
        self._clock = clock

    def _tick(self) -> int:
        return math.ceil(self._clock() / (self._lifetime / 2))

    def _sign(self, action: str, tick: int, salt: str) -> str:
        message = f"{action}|{tick}|{salt}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def issue(self, action: str) -> str:
        tick = self._tick()
        salt = secrets.token_hex(8)
        return f"{salt}.{tick}.{self._sign(action, tick, salt)}"

    def verify(self, action: str, token: Optional[str]) -> bool:
        if not token:
            return False
        parts = token.split(".")
        if len(parts) != 3:
            return False
        salt, raw_tick, signature = parts
        try:
            tick = int(raw_tick)
        except ValueError:
            return False

        current = self._tick()
        if tick not in (current, current - 1):
            LOGGER.warning("expired action token", extra={"action": action})
            return False
        if not hmac.compare_digest(signature, self._sign(action, tick, salt)):
            LOGGER.warning("action token signature mismatch", extra={"action": action})
            return False

        digest = hashlib.sha256(token.encode("utf-8")).hexdigest()
        if not self._store.add(NONCE_KEY_PREFIX + digest, 1, ttl=self._lifetime):
            LOGGER.warning("action token replayed", extra={"action": action})
            return False
        return True
