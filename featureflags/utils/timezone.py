"""
Timezone Utilities.

Golden Rules:
1. Storage: always UTC
2. Naive datetimes coming out of the store are UTC
3. Wire format: RFC 1123 ("Wed, 01 Jan 2025 00:00:00 GMT")
"""

from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Optional

# UTC constant
UTC = timezone.utc


def utc_now() -> datetime:
    """
    Get current time in UTC (timezone-aware).

    Always use this instead of datetime.utcnow() which returns
    naive datetime.
    """
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to timezone-aware UTC.

    Naive values are assumed to already be UTC (that is how the
    store keeps them), aware values are converted.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an RFC 1123 string.

    Usage:
        format_http_date(datetime(2025, 1, 1))
        # 'Wed, 01 Jan 2025 00:00:00 GMT'
    """
    return format_datetime(ensure_utc(dt), usegmt=True)
