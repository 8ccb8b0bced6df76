"""Administrative unblock and log pruning actions."""
from __future__ import annotations

import logging
import re
from typing import Mapping, Optional

from ip_block.audit_log import AuditLog
from ip_block.rate_limit import AttemptCounter
from ip_block.utils import clean_text_field

LOGGER = logging.getLogger(__name__)

UNBLOCK_ACTION = "unblock_ip"
REMOVE_LOG_ACTION = "remove_log_entry"

# Token action identifiers per admin action.
TOKEN_ACTIONS = {
    UNBLOCK_ACTION: "ip_block_unblock_action",
    REMOVE_LOG_ACTION: "ip_block_remove_log",
}


_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")


def _parse_index(value: Optional[str]) -> int:
    """Read the leading integer, so ``"2abc"`` is 2; anything else is -1."""

    match = _LEADING_INT_RE.match(value or "")
    return int(match.group(1)) if match else -1


class AdminControl:
    """Applies admin actions when the caller holds the manage capability.

    Unauthorized calls do nothing and return ``False``.
    """

    def __init__(self, counter: AttemptCounter, audit_log: AuditLog) -> None:
        self.counter = counter
        self.audit_log = audit_log

    def unblock(self, client_ip: str, also_remove_logs: bool = False, *, authorized: bool) -> bool:
        if not authorized:
            return False
        self.counter.reset(client_ip)
        removed = self.audit_log.remove_by_address(client_ip) if also_remove_logs else 0
        LOGGER.info(
            "ip unblocked, %d log entries removed",
            removed,
            extra={"client_ip": client_ip, "action": UNBLOCK_ACTION},
        )
        return True

    def remove_log_entry(self, index: int, *, authorized: bool) -> bool:
        if not authorized:
            return False
        removed = self.audit_log.remove_by_index(index)
        LOGGER.info("log entry %d removed: %s", index, removed, extra={"action": REMOVE_LOG_ACTION})
        return removed

    def dispatch(self, form: Mapping[str, str], *, authorized: bool) -> Optional[str]:
        """Run the action named by ``ip_block_action``; return the admin notice."""

        if not authorized:
            return None
        action = form.get("ip_block_action")
        if action == UNBLOCK_ACTION:
            client_ip = clean_text_field(form.get("ip"))
            also_remove = form.get("ip_block_remove_logs") == "1"
            self.unblock(client_ip, also_remove, authorized=authorized)
            return "IP unblocked."
        if action == REMOVE_LOG_ACTION:
            self.remove_log_entry(_parse_index(form.get("log_index")), authorized=authorized)
            return "Log entry removed."
        return None
