"""Clock abstraction so time resolution is deterministic in tests."""

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    """Supplies the current instant."""

    def now(self) -> datetime:
        """Return the current timezone-aware datetime."""


@dataclass
class SystemClock(Clock):
    """Wall clock in the user's configured time zone."""

    tz: tzinfo

    @classmethod
    def for_timezone(cls, name: str) -> "SystemClock":
        return cls(tz=ZoneInfo(name))

    def now(self) -> datetime:
        return datetime.now(tz=self.tz)
