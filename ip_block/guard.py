"""Allow/block decision for checkout submissions."""
from __future__ import annotations

import enum
import html
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional

from ip_block.audit_log import AuditLog, LogEntry
from ip_block.rate_limit import AttemptCounter
from ip_block.utils import resolve_client_ip

LOGGER = logging.getLogger(__name__)

BLOCK_NOTICE = (
    "We detected several payment attempts from your IP ({ip}). "
    "For your security, new attempts are blocked for {minutes} minutes."
)


class Outcome(str, enum.Enum):
    ALLOWED = "allowed"
    BLOCKED = "blocked"


@dataclass
class CheckoutSubmission:
    """What the guard needs to know about one checkout request."""

    headers: Mapping[str, str] = field(default_factory=dict)
    remote_addr: Optional[str] = None
    billing_email: Optional[str] = None
    url: Optional[str] = None

    @property
    def user_agent(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "user-agent":
                return value
        return ""


@dataclass
class Decision:
    outcome: Outcome
    ip: str
    attempts: int
    notice: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOWED


class CheckoutGuard:
    """Counts checkout attempts per IP and blocks once the limit is reached.

    The submission whose increment reaches ``max_attempts`` still goes
    through but is logged, so the log shows the address before the first
    actual block.
    """

    def __init__(
        self,
        counter: AttemptCounter,
        audit_log: AuditLog,
        max_attempts: int = 5,
        window_seconds: int = 3600,
        timezone_name: str = "UTC",
    ) -> None:
        self.counter = counter
        self.audit_log = audit_log
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.timezone_name = timezone_name

    def evaluate(self, submission: CheckoutSubmission) -> Decision:
        client_ip = resolve_client_ip(submission.headers, submission.remote_addr)
        current = self.counter.get_count(client_ip)

        if current >= self.max_attempts:
            self._log_blocked(client_ip, current, submission)
            LOGGER.warning("checkout blocked", extra={"client_ip": client_ip, "attempts": current})
            return Decision(
                outcome=Outcome.BLOCKED,
                ip=client_ip,
                attempts=current,
                notice=self.block_notice(client_ip),
            )

        new_count = self.counter.increment(client_ip)
        if new_count == self.max_attempts:
            self._log_blocked(client_ip, new_count, submission)
            LOGGER.warning(
                "checkout attempt limit reached", extra={"client_ip": client_ip, "attempts": new_count}
            )
        return Decision(outcome=Outcome.ALLOWED, ip=client_ip, attempts=new_count)

    def block_notice(self, client_ip: str) -> str:
        return BLOCK_NOTICE.format(ip=html.escape(client_ip), minutes=self.window_seconds // 60)

    def _log_blocked(self, client_ip: str, attempts: int, submission: CheckoutSubmission) -> None:
        self.audit_log.record(
            LogEntry.capture(
                ip=client_ip,
                attempts=attempts,
                user_agent=submission.user_agent,
                email=submission.billing_email,
                url=submission.url,
                timezone_name=self.timezone_name,
            )
        )
