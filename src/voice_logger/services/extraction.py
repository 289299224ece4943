"""Extraction of typed voice actions from a transcript."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from voice_logger.domain.actions import ActionType, MealClassification, VoiceAction
from voice_logger.domain.errors import (
    ExtractionFailed,
    SchemaValidationError,
    TransportError,
)
from voice_logger.domain.food_reference import is_main_ingredient
from voice_logger.domain.timing import TimeExpression, TimeSource
from voice_logger.services.completion import StructuredCompletionService
from voice_logger.services.meal_grouping import (
    MealGrouper,
    SpannedAction,
    locate_span,
    sort_by_position,
)
from voice_logger.services.time_resolver import TimeResolver, normalize_meal


def _nullable(schema: dict[str, object]) -> dict[str, object]:
    return {"anyOf": [schema, {"type": "null"}]}


_STRING = {"type": "string"}
_NULLABLE_STRING = _nullable(_STRING)

COMPONENT_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "name": _STRING,
        "quantity": _nullable({"type": "number", "minimum": 0}),
        "unit": _NULLABLE_STRING,
        "preparation_method": _NULLABLE_STRING,
        "is_main_ingredient": _nullable({"type": "boolean"}),
    },
    "required": [
        "name",
        "quantity",
        "unit",
        "preparation_method",
        "is_main_ingredient",
    ],
    "additionalProperties": False,
}

_DETAIL_PROPERTIES: dict[str, object] = {
    "item": _NULLABLE_STRING,
    "amount": _NULLABLE_STRING,
    "unit": _NULLABLE_STRING,
    "meal_type": _nullable(
        {"type": "string", "enum": [kind.value for kind in MealClassification]}
    ),
    "meal_name": _NULLABLE_STRING,
    "meal_slot": _NULLABLE_STRING,
    "components": _nullable({"type": "array", "items": COMPONENT_SCHEMA}),
    "severity": _NULLABLE_STRING,
    "symptoms": _nullable({"type": "array", "items": _STRING}),
    "vitamin_name": _NULLABLE_STRING,
    "dosage": _NULLABLE_STRING,
    "frequency": _NULLABLE_STRING,
    "times_per_day": _nullable({"type": "integer", "minimum": 0}),
    "notes": _NULLABLE_STRING,
}

ACTIONS_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "actions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "action_type": {
                        "type": "string",
                        "enum": [kind.value for kind in ActionType],
                    },
                    "confidence": {"type": "number", "minimum": 0.0, "maximum": 1.0},
                    "span": _STRING,
                    "time_reference": {
                        "type": "object",
                        "properties": {
                            "kind": {
                                "type": "string",
                                "enum": ["explicit", "meal", "relative", "none"],
                            },
                            "explicit_time": _NULLABLE_STRING,
                            "meal": _NULLABLE_STRING,
                            "offset_minutes": _nullable({"type": "number"}),
                        },
                        "required": ["kind", "explicit_time", "meal", "offset_minutes"],
                        "additionalProperties": False,
                    },
                    "details": {
                        "type": "object",
                        "properties": _DETAIL_PROPERTIES,
                        "required": list(_DETAIL_PROPERTIES),
                        "additionalProperties": False,
                    },
                },
                "required": [
                    "action_type",
                    "confidence",
                    "span",
                    "time_reference",
                    "details",
                ],
                "additionalProperties": False,
            },
        }
    },
    "required": ["actions"],
    "additionalProperties": False,
}

EXTRACTION_SYSTEM = """\
You turn a spoken health-journal note into a list of loggable actions.

Action types: log_water, log_food, log_symptom, log_vitamin (took a vitamin),
add_vitamin (add a supplement to the regimen), log_score_event, unknown.

For every action copy the exact words it came from into "span".

Food grouping:
- Foods eaten together as one meal are ONE log_food action with meal_type
  "meal_combination" (or "recipe" for a single dish made of ingredients) and
  one component per food. "I made porkchops and potatoes" is one meal.
- Foods separated in time ("then", "later", "after that") are separate
  actions with meal_type "single_item" and no components.
- A snack of one food is "single_item" or "snack".
- Flag primary proteins and starches as main ingredients, not sauces or
  garnish.

Time references:
- A clock time ("at 2pm") is kind "explicit" with explicit_time as ISO-8601
  or the spoken clock time.
- A meal word ("for breakfast", "at dinner") is kind "meal".
- "30 minutes ago" is kind "relative" with offset_minutes 30.
- No time mentioned is kind "none". Never invent a time.

Symptoms: severity is "mild", "moderate" or "severe" when stated.
Water: amount and unit as spoken, null when not stated.
"""

_logger = logging.getLogger(__name__)


class RawTimeReference(BaseModel):
    kind: Literal["explicit", "meal", "relative", "none"] = "none"
    explicit_time: str | None = None
    meal: str | None = None
    offset_minutes: float | None = None

    def to_expression(self) -> TimeExpression:
        """Expression for the declared ``kind``.

        Fields ranked above the kind are ignored; lower-ranked ones stay as
        fallbacks for the resolver's bounds check.
        """
        if self.kind == "none":
            return TimeExpression.none()
        offset = None
        if self.offset_minutes is not None:
            offset = timedelta(minutes=abs(self.offset_minutes))
        explicit = self.explicit_time or None
        meal = self.meal or None
        if self.kind != "explicit":
            explicit = None
        if self.kind == "relative":
            meal = None
        return TimeExpression(explicit=explicit, meal=meal, offset=offset)


class RawAction(BaseModel):
    """Action as returned by the model, before domain validation."""

    action_type: ActionType
    confidence: float = Field(ge=0.0, le=1.0)
    span: str = ""
    time_reference: RawTimeReference = Field(default_factory=RawTimeReference)
    details: dict[str, Any] = Field(default_factory=dict)


class ExtractionResponse(BaseModel):
    actions: list[RawAction]


@dataclass
class ActionExtractor:
    """Extracts, groups and time-stamps the actions in a transcript."""

    completion: StructuredCompletionService
    resolver: TimeResolver = field(default_factory=TimeResolver)
    grouper: MealGrouper = field(default_factory=MealGrouper)

    async def extract(self, transcript: str, now: datetime) -> list[VoiceAction]:
        """Return actions ordered by where they were mentioned."""
        try:
            response = await self.completion.run(
                name="voice_actions",
                schema=ACTIONS_SCHEMA,
                system=EXTRACTION_SYSTEM,
                prompt=self._prompt(transcript, now),
                response_model=ExtractionResponse,
            )
            spanned = self._to_spanned(transcript, response.actions)
        except (TransportError, SchemaValidationError) as exc:
            raise ExtractionFailed(exc) from exc

        grouped = self.grouper.group(transcript, spanned)
        actions = [
            self._finalize(item, now)
            for item in sort_by_position(grouped, transcript)
        ]
        _logger.info(
            "Extracted %s action(s): %s",
            len(actions),
            ", ".join(action.summary() for action in actions),
        )
        return actions

    def _prompt(self, transcript: str, now: datetime) -> str:
        meal_times = ", ".join(
            f"{meal} {slot.strftime('%H:%M')}"
            for meal, slot in self.resolver.meal_times.items()
        )
        return (
            f"Current time: {now.isoformat()} ({now.strftime('%A')})\n"
            f"Default meal times: {meal_times}\n"
            f"Transcript: {transcript}"
        )

    def _to_spanned(
        self, transcript: str, raw_actions: list[RawAction]
    ) -> list[SpannedAction]:
        spanned: list[SpannedAction] = []
        cursor = 0
        for raw in raw_actions:
            try:
                action = VoiceAction.model_validate(
                    {
                        "action_type": raw.action_type,
                        "confidence": raw.confidence,
                        "details": _normalize_details(raw.details),
                    }
                )
            except ValidationError as exc:
                _logger.warning("Extracted action failed validation: %s", exc)
                raise SchemaValidationError(
                    f"invalid {raw.action_type.value} action"
                ) from exc
            start = locate_span(transcript, raw.span.strip(), cursor)
            if start >= 0:
                cursor = start + len(raw.span.strip())
            spanned.append(
                SpannedAction(
                    action=action,
                    span=raw.span.strip(),
                    start=start,
                    time=raw.time_reference.to_expression(),
                )
            )
        return spanned

    def _finalize(self, item: SpannedAction, now: datetime) -> VoiceAction:
        resolved = self.resolver.resolve(item.time, now)
        action = item.action.with_time(resolved)
        if (
            resolved.source == TimeSource.MEAL_TYPE
            and action.details.meal_slot is None
            and isinstance(item.time.meal, str)
        ):
            details = action.details.model_copy(
                update={"meal_slot": normalize_meal(item.time.meal)}
            )
            action = action.model_copy(update={"details": details})
        return action


def _normalize_details(details: dict[str, Any]) -> dict[str, Any]:
    """Clean model output before domain validation."""
    cleaned = {key: value for key, value in details.items() if value is not None}
    components = cleaned.get("components")
    if not components:
        cleaned.pop("components", None)
    else:
        cleaned["components"] = [
            _normalize_component(component) for component in components
        ]
    if cleaned.get("meal_type") == MealClassification.SINGLE_ITEM.value and (
        "components" in cleaned
    ):
        # A single item reported with one component is the item itself.
        if len(cleaned["components"]) == 1:
            only = cleaned.pop("components")[0]
            cleaned.setdefault("item", only.get("name"))
    return cleaned


def _normalize_component(component: Any) -> Any:
    if not isinstance(component, dict):
        return component
    normalized = {key: value for key, value in component.items() if value is not None}
    name = normalized.get("name")
    if "is_main_ingredient" not in normalized and isinstance(name, str):
        normalized["is_main_ingredient"] = is_main_ingredient(name)
    return normalized
