"""Voice action models produced by action extraction."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from voice_logger.domain.timing import ResolvedTime, TimeSource


class ActionType(str, Enum):
    """Kinds of loggable events detected in a transcript."""

    LOG_WATER = "log_water"
    LOG_FOOD = "log_food"
    LOG_SYMPTOM = "log_symptom"
    LOG_VITAMIN = "log_vitamin"
    ADD_VITAMIN = "add_vitamin"
    LOG_SCORE_EVENT = "log_score_event"
    UNKNOWN = "unknown"


class MealClassification(str, Enum):
    """Whether a food action is one item or a compound meal."""

    SINGLE_ITEM = "single_item"
    RECIPE = "recipe"
    MEAL_COMBINATION = "meal_combination"
    SNACK = "snack"


COMPOUND_MEALS = frozenset(
    {MealClassification.RECIPE, MealClassification.MEAL_COMBINATION}
)


class MealComponent(BaseModel):
    """One named ingredient or dish within a compound meal."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    quantity: float | None = Field(default=None, ge=0)
    unit: str | None = None
    preparation_method: str | None = None
    is_main_ingredient: bool = False

    def describe(self) -> str:
        """Render the component as a short food phrase."""
        parts: list[str] = []
        if self.quantity is not None:
            parts.append(f"{self.quantity:g}")
        if self.unit:
            parts.append(self.unit)
        if self.preparation_method:
            parts.append(self.preparation_method)
        parts.append(self.name)
        return " ".join(parts)


class ActionDetails(BaseModel):
    """Type-specific payload of a voice action."""

    model_config = ConfigDict(frozen=True)

    item: str | None = None
    amount: str | None = None
    unit: str | None = None
    meal_type: MealClassification | None = None
    meal_name: str | None = None
    meal_slot: str | None = None
    components: list[MealComponent] | None = None
    severity: str | None = None
    symptoms: list[str] | None = None
    vitamin_name: str | None = None
    dosage: str | None = None
    frequency: str | None = None
    times_per_day: int | None = Field(default=None, ge=0)
    notes: str | None = None
    timestamp: datetime | None = None
    time_source: TimeSource | None = None

    @model_validator(mode="after")
    def _check_components(self) -> "ActionDetails":
        if self.meal_type in COMPOUND_MEALS and not self.components:
            raise ValueError(f"{self.meal_type.value} requires at least one component")
        if self.meal_type == MealClassification.SINGLE_ITEM and self.components:
            raise ValueError("single_item must not carry components")
        return self


class VoiceAction(BaseModel):
    """One detected loggable event."""

    model_config = ConfigDict(frozen=True)

    action_type: ActionType
    confidence: float = Field(ge=0.0, le=1.0)
    details: ActionDetails = Field(default_factory=ActionDetails)

    @property
    def is_compound_meal(self) -> bool:
        return self.details.meal_type in COMPOUND_MEALS

    def with_time(self, resolved: ResolvedTime) -> "VoiceAction":
        """Return a copy with the resolved timestamp applied."""
        details = self.details.model_copy(
            update={"timestamp": resolved.instant, "time_source": resolved.source}
        )
        return self.model_copy(update={"details": details})

    def food_description(self) -> str:
        """Text handed to the nutrition estimator for this action."""
        if self.details.components:
            return " and ".join(
                component.describe() for component in self.details.components
            )
        name = self.details.item or self.details.meal_name or "meal"
        words = name.lower().split()
        # Amount and unit may arrive outside ``item``; don't repeat them.
        prefix = [
            part
            for part in (self.details.amount, self.details.unit)
            if part and part.lower() not in words
        ]
        return " ".join([*prefix, name])

    def summary(self) -> str:
        """Short human-readable label used in logs and API responses."""
        details = self.details
        if self.action_type == ActionType.LOG_FOOD:
            return details.meal_name or details.item or "food"
        if self.action_type == ActionType.LOG_WATER:
            return f"{details.amount or '8'} {details.unit or 'oz'} water"
        if self.action_type == ActionType.LOG_SYMPTOM:
            return ", ".join(details.symptoms or []) or details.notes or "symptom"
        if self.action_type in {ActionType.LOG_VITAMIN, ActionType.ADD_VITAMIN}:
            return details.vitamin_name or "vitamin"
        return details.notes or self.action_type.value
