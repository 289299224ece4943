"""Post-processing that groups extracted foods into meals or splits them apart.

Two foods mentioned together and eaten together ("I made porkchops and
potatoes") are one meal; foods separated in time ("eggs, then later an apple")
are separate entries. The model usually gets this right; this pass enforces
the rule from the transcript text itself.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Protocol

from voice_logger.domain.actions import (
    ActionType,
    MealClassification,
    MealComponent,
    VoiceAction,
)
from voice_logger.domain.food_reference import is_main_ingredient, lookup_food
from voice_logger.domain.timing import TimeExpression

SEPARATION_RE = re.compile(r"\b(?:then|later|after that|afterwards?)\b")
COOKING_FRAMING_RE = re.compile(
    r"\b(?:made|make|cooked|cook|prepared|fixed|whipped up|grilled|baked|"
    r"roasted)\b"
)
MEAL_CONTEXT_RE = re.compile(
    r"\b(?:for (?:breakfast|brunch|lunch|dinner|supper)|"
    r"(?:my|a) (?:breakfast|lunch|dinner|supper|meal)|plate of)\b"
)
_SENTENCE_RE = re.compile(r"[.!?;]")

DEFAULT_PAIRINGS: frozenset[frozenset[str]] = frozenset(
    frozenset(pair)
    for pair in (
        ("porkchop", "potato"),
        ("chicken", "rice"),
        ("egg", "toast"),
        ("peanutbutter", "jelly"),
        ("burger", "fries"),
        ("fish", "chips"),
        ("cereal", "milk"),
        ("steak", "potato"),
        ("pasta", "meatball"),
        ("rice", "bean"),
    )
)

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpannedAction:
    """Extracted action tied to the transcript text it came from."""

    action: VoiceAction
    span: str
    start: int
    time: TimeExpression = field(default_factory=TimeExpression.none)

    @property
    def end(self) -> int:
        return self.start + len(self.span)

    @property
    def found(self) -> bool:
        return self.start >= 0


class PairingPolicy(Protocol):
    """Decides whether two foods are conventionally eaten together."""

    def is_paired(self, first: str, second: str) -> bool:
        """Return True when the two foods form a usual combination."""


@dataclass
class CuratedPairingPolicy(PairingPolicy):
    pairings: frozenset[frozenset[str]] = DEFAULT_PAIRINGS

    def is_paired(self, first: str, second: str) -> bool:
        first_match = lookup_food(first)
        second_match = lookup_food(second)
        if first_match is None or second_match is None:
            return False
        return frozenset({first_match.key, second_match.key}) in self.pairings


def locate_span(transcript: str, span: str, after: int = 0) -> int:
    """Case-insensitive position of ``span`` in the transcript, or -1."""
    if not span:
        return -1
    lowered = transcript.lower()
    position = lowered.find(span.lower(), after)
    if position < 0 and after:
        position = lowered.find(span.lower())
    return position


def sort_by_position(
    items: list[SpannedAction], transcript: str
) -> list[SpannedAction]:
    """Order by span position; spans not found keep their order at the end."""
    ordered = sorted(
        enumerate(items),
        key=lambda pair: (
            pair[1].start if pair[1].found else len(transcript),
            pair[0],
        ),
    )
    return [item for _, item in ordered]


@dataclass
class MealGrouper:
    """Applies the meal-vs-separate rules to a batch of extracted actions."""

    pairing: PairingPolicy = field(default_factory=CuratedPairingPolicy)

    def group(
        self, transcript: str, actions: list[SpannedAction]
    ) -> list[SpannedAction]:
        split: list[SpannedAction] = []
        for item in actions:
            split.extend(self._split(transcript, item))
        return self._merge(transcript, sort_by_position(split, transcript))

    def _split(self, transcript: str, item: SpannedAction) -> list[SpannedAction]:
        components = item.action.details.components or []
        if not item.action.is_compound_meal or len(components) < 2:
            return [item]

        positions: list[int] = []
        cursor = max(item.start, 0)
        for component in components:
            position = locate_span(transcript, component.name, cursor)
            if position < 0:
                return [item]
            positions.append(position)
            cursor = position + len(component.name)
        if positions != sorted(positions):
            return [item]

        lowered = transcript.lower()
        groups: list[list[int]] = [[0]]
        for index in range(1, len(components)):
            previous_end = positions[index - 1] + len(components[index - 1].name)
            between = lowered[previous_end : positions[index]]
            if SEPARATION_RE.search(between):
                groups.append([index])
            else:
                groups[-1].append(index)
        if len(groups) == 1:
            return [item]

        _logger.info(
            "Splitting %s into %s entries on separation words",
            item.action.summary(),
            len(groups),
        )
        pieces: list[SpannedAction] = []
        for group in groups:
            members = [components[index] for index in group]
            first, last = group[0], group[-1]
            start = positions[first]
            end = positions[last] + len(components[last].name)
            action = (
                _single_item(item.action, members[0])
                if len(members) == 1
                else _combination(item.action, members)
            )
            pieces.append(
                SpannedAction(
                    action=action,
                    span=transcript[start:end],
                    start=start,
                    time=item.time,
                )
            )
        return pieces

    def _merge(
        self, transcript: str, items: list[SpannedAction]
    ) -> list[SpannedAction]:
        merged: list[SpannedAction] = []
        for item in items:
            if merged and self._should_merge(transcript, merged[-1], item):
                merged[-1] = _merge_pair(transcript, merged[-1], item)
            else:
                merged.append(item)
        return merged

    def _should_merge(
        self, transcript: str, previous: SpannedAction, current: SpannedAction
    ) -> bool:
        if not (_mergeable(previous.action) and _is_single_food(current.action)):
            return False
        if not (previous.found and current.found) or previous.time != current.time:
            return False
        if current.start < previous.end:
            return False
        between = transcript[previous.end : current.start].lower()
        if SEPARATION_RE.search(between) or _SENTENCE_RE.search(between):
            return False

        sentence = _sentence_around(transcript, previous.start, current.end)
        if COOKING_FRAMING_RE.search(sentence) or MEAL_CONTEXT_RE.search(sentence):
            return True
        last_name = _food_names(previous.action)[-1]
        if self.pairing.is_paired(last_name, _food_names(current.action)[0]):
            return True
        _logger.info(
            "Ambiguous foods kept separate: %r and %r",
            previous.span,
            current.span,
        )
        return False


def _is_single_food(action: VoiceAction) -> bool:
    return (
        action.action_type == ActionType.LOG_FOOD
        and not action.is_compound_meal
        and not action.details.components
    )


def _mergeable(action: VoiceAction) -> bool:
    """Single foods, or a combination this pass built from single foods."""
    if _is_single_food(action):
        return True
    return (
        action.action_type == ActionType.LOG_FOOD
        and action.details.meal_type == MealClassification.MEAL_COMBINATION
    )


def _food_names(action: VoiceAction) -> list[str]:
    if action.details.components:
        return [component.name for component in action.details.components]
    return [action.details.item or action.details.meal_name or "food"]


def _sentence_around(transcript: str, start: int, end: int) -> str:
    """Text of the sentence(s) covering ``start:end``."""
    sentence_start = 0
    for match in _SENTENCE_RE.finditer(transcript, 0, start):
        sentence_start = match.end()
    match = _SENTENCE_RE.search(transcript, end)
    sentence_end = match.start() if match else len(transcript)
    return transcript[sentence_start:sentence_end].lower()


def _as_component(action: VoiceAction) -> MealComponent:
    details = action.details
    name = details.item or details.meal_name or "food"
    return MealComponent(
        name=name,
        quantity=_parse_amount(details.amount),
        unit=details.unit,
        is_main_ingredient=is_main_ingredient(name),
    )


def _parse_amount(amount: str | None) -> float | None:
    if amount is None:
        return None
    try:
        value = float(amount)
    except ValueError:
        return None
    return value if value >= 0 else None


def _merge_pair(
    transcript: str, previous: SpannedAction, current: SpannedAction
) -> SpannedAction:
    if previous.action.details.components:
        components = list(previous.action.details.components)
    else:
        components = [_as_component(previous.action)]
    components.append(_as_component(current.action))
    action = _combination(previous.action, components).model_copy(
        update={
            "confidence": min(previous.action.confidence, current.action.confidence)
        }
    )
    _logger.info("Merged %r and %r into one meal", previous.span, current.span)
    return SpannedAction(
        action=action,
        span=transcript[previous.start : current.end],
        start=previous.start,
        time=previous.time,
    )


def _combination(source: VoiceAction, components: list[MealComponent]) -> VoiceAction:
    details = source.details.model_copy(
        update={
            "meal_type": MealClassification.MEAL_COMBINATION,
            "meal_name": " and ".join(component.name for component in components),
            "components": components,
            "item": None,
            "amount": None,
            "unit": None,
        }
    )
    return VoiceAction(
        action_type=ActionType.LOG_FOOD,
        confidence=source.confidence,
        details=details,
    )


def _single_item(source: VoiceAction, component: MealComponent) -> VoiceAction:
    details = source.details.model_copy(
        update={
            "meal_type": MealClassification.SINGLE_ITEM,
            "meal_name": None,
            "components": None,
            "item": component.name,
            "amount": None if component.quantity is None else f"{component.quantity:g}",
            "unit": component.unit,
        }
    )
    return VoiceAction(
        action_type=ActionType.LOG_FOOD,
        confidence=source.confidence,
        details=details,
    )
