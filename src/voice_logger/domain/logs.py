"""Domain models for persisted log entries."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4


class LogType(str, Enum):
    """Kind of health log entry."""

    FOOD = "food"
    WATER = "water"
    SYMPTOM = "symptom"
    VITAMIN = "vitamin"
    SCORE = "score"


class LogSource(str, Enum):
    """Where a log entry came from."""

    VOICE = "voice"
    MANUAL = "manual"


class NutritionStatus(str, Enum):
    """Progress of asynchronous nutrition enrichment for an entry."""

    PENDING = "pending"
    READY = "ready"
    UNAVAILABLE = "unavailable"
    NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True)
class LogEntry:
    """A persisted health log record.

    ``date`` is when the event happened, ``created_at`` is when the entry was
    written. Nutrition fields stay ``None`` until enrichment fills them in.
    """

    date: datetime
    created_at: datetime
    type: LogType
    source: LogSource = LogSource.VOICE
    id: UUID = field(default_factory=uuid4)
    item: str | None = None
    amount: str | None = None
    unit: str | None = None
    meal_type: str | None = None
    meal_name: str | None = None
    components: list[dict[str, object]] = field(default_factory=list)
    symptoms: list[str] = field(default_factory=list)
    severity: int | None = None
    vitamin_name: str | None = None
    notes: str | None = None
    time_source: str | None = None
    calories: int | None = None
    protein_g: int | None = None
    carbs_g: int | None = None
    fat_g: int | None = None
    nutrition_confidence: str | None = None
    nutrition_assumptions: list[str] = field(default_factory=list)
    nutrition_status: NutritionStatus = NutritionStatus.NOT_APPLICABLE

    def to_record(self) -> dict[str, object]:
        """Serialize to a flat JSON-friendly mapping."""
        return {
            "id": str(self.id),
            "date": self.date.isoformat(),
            "created_at": self.created_at.isoformat(),
            "type": self.type.value,
            "source": self.source.value,
            "item": self.item,
            "amount": self.amount,
            "unit": self.unit,
            "meal_type": self.meal_type,
            "meal_name": self.meal_name,
            "components": self.components,
            "symptoms": self.symptoms,
            "severity": self.severity,
            "vitamin_name": self.vitamin_name,
            "notes": self.notes,
            "time_source": self.time_source,
            "calories": self.calories,
            "protein_g": self.protein_g,
            "carbs_g": self.carbs_g,
            "fat_g": self.fat_g,
            "nutrition_confidence": self.nutrition_confidence,
            "nutrition_assumptions": self.nutrition_assumptions,
            "nutrition_status": self.nutrition_status.value,
        }
