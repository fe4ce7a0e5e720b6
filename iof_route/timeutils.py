"""Time conversion utilities for route storage times."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Final


# Storage times count milliseconds from this instant.
ZERO_TIME: Final[datetime] = datetime(1900, 1, 1, tzinfo=UTC)

_US_PER_MS: Final[int] = 1000
_MS_PER_DAY: Final[int] = 86_400_000

# Last millisecond representable as a datetime (9999-12-31T23:59:59.999).
# The 48-bit field could hold more, but later times have no datetime value.
MAX_STORAGE_TIME: Final[int] = (datetime.max.replace(tzinfo=UTC) - ZERO_TIME).days * _MS_PER_DAY + (
    _MS_PER_DAY - 1
)


def storage_time_from_dt(dt: datetime) -> int:
    """Convert a datetime to milliseconds since ZERO_TIME.

    Sub-millisecond parts are rounded to the nearest millisecond, ties away
    from zero.

    Args:
        dt: Datetime. If naive, will be treated as UTC.

    Returns:
        Storage time in milliseconds. Negative for instants before 1900.
    """

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    delta = dt - ZERO_TIME
    # Integer arithmetic keeps full microsecond precision for far-off dates.
    us = (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
    ms, rem = divmod(abs(us), _US_PER_MS)
    if rem * 2 >= _US_PER_MS:
        ms += 1
    return ms if us >= 0 else -ms


def dt_from_storage_time(storage_time: int) -> datetime:
    """Convert milliseconds since ZERO_TIME to a UTC datetime.

    Args:
        storage_time: Storage time in milliseconds, 0..MAX_STORAGE_TIME.

    Returns:
        Timezone-aware UTC datetime.
    """

    return ZERO_TIME + timedelta(milliseconds=storage_time)
