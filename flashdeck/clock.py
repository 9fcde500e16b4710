"""
Time helpers.

All scheduling code receives "now" from an injected Clock instead of
reading the wall clock, so reviews can be replayed deterministically.
Timestamps are aware UTC datetimes truncated to whole milliseconds,
which is the precision of the JSON transfer format.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

Clock = Callable[[], datetime]

ONE_DAY = timedelta(days=1)
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def truncate_ms(moment: datetime) -> datetime:
    """Drop sub-millisecond precision."""
    return moment.replace(microsecond=moment.microsecond - moment.microsecond % 1000)


def utc_now() -> datetime:
    """Default clock: current UTC time at millisecond precision."""
    return truncate_ms(datetime.now(timezone.utc))


def to_epoch_ms(moment: datetime) -> int:
    """Convert an aware datetime to integer epoch milliseconds."""
    return (moment - EPOCH) // _ONE_MS


def from_epoch_ms(value: int | float) -> datetime:
    """Convert epoch milliseconds (as found in exported JSON) to a UTC datetime."""
    return EPOCH + timedelta(milliseconds=int(round(value)))


# Range of epoch milliseconds a datetime can represent (years 1 through 9999)
MIN_EPOCH_MS = to_epoch_ms(datetime.min.replace(tzinfo=timezone.utc))
MAX_EPOCH_MS = to_epoch_ms(truncate_ms(datetime.max.replace(tzinfo=timezone.utc)))
