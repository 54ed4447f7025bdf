"""Single source of "today" for the question bank and player progression."""
from datetime import date, datetime
from zoneinfo import ZoneInfo

from .settings import QUESTION_TIMEZONE


class Clock:
    """Computes the current calendar date in a fixed time zone.

    The date is read fresh on every call; nothing is cached.
    """

    def __init__(self, tz_name: str = QUESTION_TIMEZONE):
        self.tz = ZoneInfo(tz_name)

    def today(self) -> date:
        return datetime.now(self.tz).date()


class FixedClock(Clock):
    """Clock pinned to a given date, for tests and replays."""

    def __init__(self, current: date):
        self.current = current

    def today(self) -> date:
        return self.current


def days_between(earlier: date, later: date) -> int:
    """Calendar-day gap from ``earlier`` to ``later``."""
    return (later - earlier).days
