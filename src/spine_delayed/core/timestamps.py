"""Conversion of caller-supplied moments to schedule timestamps.

The schedule is keyed by whole UNIX seconds. Anything a caller hands to
``enqueue_at`` goes through :func:`to_timestamp` before it touches Redis, so
an unconvertible value is rejected before any mutation.
"""

from __future__ import annotations

import math
import re
import time
from datetime import date, datetime
from typing import Any

from .errors import InvalidTimestampError

__all__ = ["now", "to_timestamp", "to_delay"]

_INTEGER_RE = re.compile(r"[+-]?\d+")


def now() -> int:
    """Current UNIX time in whole seconds."""
    return int(time.time())


def to_timestamp(value: Any) -> int:
    """Normalize ``value`` to an integer number of seconds since the epoch.

    Accepts ``int``, integral ``float``, strings of digits (optionally signed),
    ``datetime`` and ``date``. Naive datetimes are interpreted in local time,
    as :meth:`datetime.timestamp` does; a ``date`` means local midnight.

    Raises:
        InvalidTimestampError: If the value has no exact integer-second form.
    """
    if isinstance(value, bool):
        raise InvalidTimestampError(
            "The supplied timestamp value could not be converted to an integer.",
            value=value,
        )

    # sub-second precision is dropped, like a cast to whole seconds
    if isinstance(value, datetime):
        return math.floor(value.timestamp())
    if isinstance(value, date):
        return math.floor(datetime(value.year, value.month, value.day).timestamp())

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise InvalidTimestampError(
            "The supplied timestamp value could not be converted to an integer.",
            value=value,
        )

    if isinstance(value, str):
        text = value.strip()
        if _INTEGER_RE.fullmatch(text):
            return int(text)

    raise InvalidTimestampError(
        "The supplied timestamp value could not be converted to an integer.",
        value=value,
    )


def to_delay(value: Any) -> int:
    """Normalize a relative delay in seconds (same rules as :func:`to_timestamp`)."""
    if isinstance(value, (datetime, date)):
        raise InvalidTimestampError("A delay must be a number of seconds.", value=value)
    return to_timestamp(value)
