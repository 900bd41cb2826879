"""General-purpose helpers shared by the scoring, location and workflow layers."""

import math
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlparse

_TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)


def extract_domain(url: str) -> str:
    """Extract the lowercase host name from a URL or bare domain."""
    parsed = urlparse(url if "://" in url else f"https://{url}")
    return (parsed.hostname or "").lower()


def normalize_domain(value: str) -> str:
    """Reduce a URL or domain to a comparable bare host.

    Examples:
        >>> normalize_domain("https://www.Example.com/contact")
        'example.com'
        >>> normalize_domain("example.com.")
        'example.com'
    """
    if not value:
        return ""
    host = extract_domain(value.strip()).rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    return host


def to_website_url(domain: str) -> str:
    """Return an ``https://`` URL for a bare domain; URLs pass through."""
    domain = domain.strip()
    if domain.startswith(("http://", "https://")):
        return domain
    return f"https://{domain}"


def safe_float(value: Any, default: float = 0.0) -> float:
    """Coerce a loosely-typed payload value to a finite float."""
    if isinstance(value, bool) or value is None:
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if math.isfinite(result) else default


def safe_int(value: Any, default: int = 0) -> int:
    """Coerce a loosely-typed payload value to an int (truncating floats)."""
    return int(safe_float(value, float(default)))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an upstream timestamp into an aware UTC datetime.

    Accepts the ``"2024-05-01 10:00:00 +00:00"`` style used by DataForSEO,
    ISO-8601 strings, and epoch seconds.  Naive values are treated as UTC.
    Returns ``None`` for anything unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        parsed = None
        for fmt in _TIMESTAMP_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat a naive *value* as UTC and convert an aware one to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)

