"""Client address resolution from proxy headers."""
from __future__ import annotations

from typing import Mapping, Optional

from .text import clean_text_field

FALLBACK_IP = "0.0.0.0"
CDN_IP_HEADER = "cf-connecting-ip"
FORWARDED_FOR_HEADER = "x-forwarded-for"


def resolve_client_ip(headers: Mapping[str, str], remote_addr: Optional[str]) -> str:
    """Return the best-effort real client address.

    Checks the CDN header, then the first ``X-Forwarded-For`` hop, then the
    peer address. The value is not validated as an IP; headers are only
    trustworthy when a proxy in front of the app overwrites them.
    """

    lowered = {key.lower(): value for key, value in headers.items()}

    candidates = [
        lowered.get(CDN_IP_HEADER),
        (lowered.get(FORWARDED_FOR_HEADER) or "").split(",", 1)[0],
        remote_addr,
    ]
    for candidate in candidates:
        cleaned = clean_text_field(candidate)
        if cleaned:
            return cleaned
    return FALLBACK_IP
