"""Injectable wall clock.

Services take a zero-argument callable returning unix seconds so tests can pin
or advance time without patching.
"""

import time
from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], float]


def utc_now(clock: Clock = time.time) -> datetime:
    return datetime.fromtimestamp(clock(), timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands datetimes back naive; every stored value is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
