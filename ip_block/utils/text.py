"""Sanitizers for values copied from the request into the audit log."""
from __future__ import annotations

import re

_TAG_RE = re.compile(r"<[^>]*>")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]+")
_SPACE_RE = re.compile(r"\s+")
_EMAIL_LOCAL_INVALID_RE = re.compile(r"[^a-zA-Z0-9!#$%&'*+/=?^_`{|}~.-]")
_DOMAIN_LABEL_INVALID_RE = re.compile(r"[^a-z0-9-]+", re.IGNORECASE)
_URL_INVALID_RE = re.compile(r"[^a-z0-9\-~+_.?#=!&;,/:%@$|*'()\[\]\x80-\uffff]", re.IGNORECASE)

ELLIPSIS = "…"


def clean_text_field(value: str | None) -> str:
    """Strip markup, control characters and redundant whitespace."""

    if not value:
        return ""
    value = _TAG_RE.sub("", value)
    value = _CONTROL_RE.sub(" ", value)
    return _SPACE_RE.sub(" ", value).strip()


def trim_words(text: str | None, limit: int = 20) -> str:
    """Keep the first ``limit`` words, marking a cut with an ellipsis."""

    words = clean_text_field(text).split(" ")
    words = [word for word in words if word]
    if len(words) <= limit:
        return " ".join(words)
    return " ".join(words[:limit]) + ELLIPSIS


def sanitize_email(value: str | None) -> str:
    """Return a cleaned email address, or an empty string when it is not one."""

    value = clean_text_field(value)
    if len(value) < 6 or value.find("@", 1) == -1:
        return ""
    local, domain = value.split("@", 1)
    local = _EMAIL_LOCAL_INVALID_RE.sub("", local)
    if not local:
        return ""

    domain = domain.strip(" \t\n\r\x00\x0b.")
    labels = []
    for label in domain.split("."):
        label = _DOMAIN_LABEL_INVALID_RE.sub("", label.strip(" \t\n\r\x00\x0b-")).strip("-")
        if label:
            labels.append(label)
    if len(labels) < 2:
        return ""
    return f"{local}@{'.'.join(labels)}"


def sanitize_url(value: str | None) -> str:
    """Drop characters that have no business in a URL."""

    if not value:
        return ""
    value = value.strip().replace(" ", "%20")
    return _URL_INVALID_RE.sub("", value)
