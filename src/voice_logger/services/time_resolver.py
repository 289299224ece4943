"""Resolve spoken time references into concrete instants."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta

from voice_logger.domain.timing import ResolvedTime, TimeExpression, TimeSource

DEFAULT_MEAL_TIMES: dict[str, time] = {
    "breakfast": time(8, 0),
    "lunch": time(12, 0),
    "dinner": time(18, 0),
    "snack": time(15, 0),
}

_MEAL_SYNONYMS = {
    "supper": "dinner",
    "evening": "dinner",
    "this evening": "dinner",
    "morning": "breakfast",
    "this morning": "breakfast",
    "midday": "lunch",
    "noon": "lunch",
    "afternoon snack": "snack",
}

_NUMBER_WORDS = {
    "a": 1.0,
    "an": 1.0,
    "one": 1.0,
    "two": 2.0,
    "three": 3.0,
    "four": 4.0,
    "five": 5.0,
    "six": 6.0,
    "ten": 10.0,
    "fifteen": 15.0,
    "twenty": 20.0,
    "thirty": 30.0,
    "forty": 40.0,
    "forty-five": 45.0,
    "a couple of": 2.0,
    "a few": 3.0,
}

_UNIT_SECONDS = {
    "minute": 60,
    "min": 60,
    "hour": 3600,
    "hr": 3600,
    "day": 86400,
}

_CLOCK_RE = re.compile(
    r"^(?:at\s+)?(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?\s*"
    r"(?P<meridiem>am|pm|a\.m\.|p\.m\.)?$"
)
_RELATIVE_RE = re.compile(
    r"^(?P<count>\d+(?:\.\d+)?|[a-z-]+(?: [a-z]+)?(?: of)?)\s+"
    r"(?P<unit>minute|min|hour|hr|day)s?\s+ago$"
)

_logger = logging.getLogger(__name__)


@dataclass
class TimeResolver:
    """Turns a time expression plus a reference "now" into an instant.

    Rules apply in priority order: explicit time, meal-type keyword, relative
    offset, then ``now``. Explicit and relative results outside the accepted
    window (``max_past`` before now, ``max_future`` after now) are rejected and
    the next rule is tried. A bare clock time that lands past the window is
    read as yesterday's. Meal keywords always map onto now's calendar day.
    """

    meal_times: dict[str, time] = field(
        default_factory=lambda: dict(DEFAULT_MEAL_TIMES)
    )
    max_past: timedelta = timedelta(hours=24)
    max_future: timedelta = timedelta(hours=1)

    def resolve(self, expression: TimeExpression, now: datetime) -> ResolvedTime:
        """Resolve an expression; never raises, worst case returns ``now``."""
        try:
            return self._resolve(expression, now)
        except (ValueError, OverflowError, TypeError) as exc:
            _logger.warning("Time resolution fell back to now: %s", exc)
            return ResolvedTime(instant=now, source=TimeSource.CURRENT_TIME)

    def meal_time(self, meal: str, now: datetime) -> datetime | None:
        """Return the default slot for a meal keyword on now's day."""
        key = normalize_meal(meal)
        if key is None:
            return None
        slot = self.meal_times.get(key) or DEFAULT_MEAL_TIMES[key]
        return now.replace(
            hour=slot.hour, minute=slot.minute, second=0, microsecond=0
        )

    def _resolve(self, expression: TimeExpression, now: datetime) -> ResolvedTime:
        if expression.explicit is not None:
            explicit = _parse_explicit(expression.explicit, now)
            if (
                explicit is not None
                and explicit > now + self.max_future
                and _is_clock_string(expression.explicit)
            ):
                # A bare clock time later than now means yesterday.
                explicit -= timedelta(days=1)
            if explicit is not None and self._within_bounds(explicit, now):
                return ResolvedTime(instant=explicit, source=TimeSource.EXPLICIT)
            _logger.info(
                "Rejected explicit time %r (resolved=%s)",
                expression.explicit,
                explicit,
            )

        if expression.meal is not None:
            meal_time = self.meal_time(expression.meal, now)
            if meal_time is not None:
                return ResolvedTime(instant=meal_time, source=TimeSource.MEAL_TYPE)

        if expression.offset is not None:
            offset = parse_offset(expression.offset)
            if offset is not None:
                relative = now - offset
                if self._within_bounds(relative, now):
                    return ResolvedTime(instant=relative, source=TimeSource.RELATIVE)
            _logger.info("Rejected relative time %r", expression.offset)

        return ResolvedTime(instant=now, source=TimeSource.CURRENT_TIME)

    def _within_bounds(self, instant: datetime, now: datetime) -> bool:
        return now - self.max_past <= instant <= now + self.max_future


def normalize_meal(meal: str) -> str | None:
    """Map a meal keyword or synonym onto breakfast/lunch/dinner/snack."""
    cleaned = " ".join(meal.lower().split())
    cleaned = _MEAL_SYNONYMS.get(cleaned, cleaned)
    return cleaned if cleaned in DEFAULT_MEAL_TIMES else None


def parse_offset(value: timedelta | str) -> timedelta | None:
    """Parse a relative offset such as "30 minutes ago" or "an hour ago"."""
    if isinstance(value, timedelta):
        return value
    cleaned = " ".join(value.lower().strip().split())
    if cleaned in {"half an hour ago", "half hour ago"}:
        return timedelta(minutes=30)
    match = _RELATIVE_RE.match(cleaned)
    if not match:
        return None
    raw_count = match.group("count")
    if raw_count[0].isdigit():
        count = float(raw_count)
    else:
        count = _NUMBER_WORDS.get(raw_count)
        if count is None:
            return None
    return timedelta(seconds=count * _UNIT_SECONDS[match.group("unit")])


def _parse_explicit(value: datetime | str, now: datetime) -> datetime | None:
    if isinstance(value, datetime):
        return _align(value, now)
    cleaned = value.strip()
    if not cleaned:
        return None
    try:
        return _align(datetime.fromisoformat(cleaned), now)
    except ValueError:
        pass
    return _parse_clock(cleaned.lower(), now)


def _parse_clock(value: str, now: datetime) -> datetime | None:
    match = _CLOCK_RE.match(value)
    if not match:
        return None
    hour = int(match.group("hour"))
    minute = int(match.group("minute") or 0)
    meridiem = match.group("meridiem")
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if meridiem.startswith("p") else 0)
    if hour > 23 or minute > 59:
        return None
    return now.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _is_clock_string(value: datetime | str) -> bool:
    return isinstance(value, str) and bool(_CLOCK_RE.match(value.strip().lower()))


def _align(value: datetime, now: datetime) -> datetime:
    """Put a parsed datetime into now's time zone."""
    if value.tzinfo is None:
        return value.replace(tzinfo=now.tzinfo)
    if now.tzinfo is None:
        return value.astimezone().replace(tzinfo=None)
    return value.astimezone(now.tzinfo)
