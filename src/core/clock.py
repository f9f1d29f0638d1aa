"""UTC time helpers.

Timestamps are stored as naive UTC datetimes so comparisons behave the same on
SQLite and server databases.
"""

from datetime import datetime
from typing import Callable

import pytz

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current UTC time without tzinfo."""
    return datetime.now(pytz.utc).replace(tzinfo=None)
