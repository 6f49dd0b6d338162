"""
LabQueue Server - Clock

Supplies the current time to the engine. Every time-based transition is
derived from comparing Now() against stored timestamps, so tests inject
their own clock to drive expiry deterministically.
"""

from datetime import datetime, timezone


class Clock:
    """Interface for a source of timezone-aware UTC timestamps"""

    def Now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall-clock time in UTC"""

    def Now(self) -> datetime:
        return datetime.now(timezone.utc)
