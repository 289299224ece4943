"""Time reference models for resolving when a logged event happened."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum


class TimeSource(str, Enum):
    """How an action's timestamp was derived."""

    EXPLICIT = "explicit"
    MEAL_TYPE = "meal_type"
    RELATIVE = "relative"
    CURRENT_TIME = "current_time"


@dataclass(frozen=True)
class TimeExpression:
    """Time reference attached to one span of an utterance.

    Any combination of fields may be set; the resolver tries them in priority
    order (explicit, meal keyword, relative offset) and falls back to now.
    """

    explicit: datetime | str | None = None
    meal: str | None = None
    offset: timedelta | str | None = None

    @classmethod
    def none(cls) -> "TimeExpression":
        """Expression with no time reference at all."""
        return cls()

    def is_empty(self) -> bool:
        """Return True when no time reference was given."""
        return self.explicit is None and self.meal is None and self.offset is None


@dataclass(frozen=True)
class ResolvedTime:
    """Concrete instant plus the rule that produced it."""

    instant: datetime
    source: TimeSource
