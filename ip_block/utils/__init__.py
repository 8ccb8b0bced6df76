"""Utility helpers."""
from .network import FALLBACK_IP, resolve_client_ip  # noqa: F401
from .text import clean_text_field, sanitize_email, sanitize_url, trim_words  # noqa: F401
from .time import format_site_time, from_epoch, to_timezone  # noqa: F401
