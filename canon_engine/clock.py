"""
canon_engine/clock.py -- Injectable time source.

Components that stamp their output take a ``clock`` callable so tests (and
replays) can pin the time.  Timestamps are UTC ISO-8601 strings with
millisecond precision and a ``Z`` suffix, the format the editor stores.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """Format *moment* as ``2025-01-31T12:00:00.000Z``.

    Naive datetimes are taken to be UTC already.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_epoch_ms(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)
