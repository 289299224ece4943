"""Nutrition domain models."""

from dataclasses import dataclass, field
from enum import Enum

ENERGY_TOLERANCE = 0.15


class NutritionConfidence(str, Enum):
    """Qualitative reliability of a nutrition estimate."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class MacroProfile:
    """Macronutrient profile for a food portion."""

    calories: float
    protein_g: float
    fat_g: float
    carbs_g: float

    def scaled(self, factor: float) -> "MacroProfile":
        """Return the profile multiplied by a portion factor."""
        return MacroProfile(
            calories=self.calories * factor,
            protein_g=self.protein_g * factor,
            fat_g=self.fat_g * factor,
            carbs_g=self.carbs_g * factor,
        )

    def plus(self, other: "MacroProfile") -> "MacroProfile":
        return MacroProfile(
            calories=self.calories + other.calories,
            protein_g=self.protein_g + other.protein_g,
            fat_g=self.fat_g + other.fat_g,
            carbs_g=self.carbs_g + other.carbs_g,
        )


ZERO_MACROS = MacroProfile(0.0, 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class FoodReference:
    """Standard per-portion values for a known food."""

    name: str
    portion: str
    macros: MacroProfile
    needs_preparation: bool = False
    vague: bool = False
    main_ingredient: bool = True


@dataclass(frozen=True)
class ComponentEstimate:
    """Estimate for one component of a described meal."""

    name: str
    quantity: float
    macros: MacroProfile
    source: str


@dataclass(frozen=True)
class NutritionEstimate:
    """Calorie and macro estimate for one food description."""

    calories: int
    protein_g: int
    carbs_g: int
    fat_g: int
    confidence: NutritionConfidence
    assumptions: list[str] = field(default_factory=list)
    components: list[ComponentEstimate] = field(default_factory=list)

    def macro_energy(self) -> int:
        """Energy implied by the macros (4/4/9 kcal per gram)."""
        return 4 * self.protein_g + 4 * self.carbs_g + 9 * self.fat_g

    def energy_gap(self) -> float:
        """Relative difference between stated and macro-derived calories."""
        if self.calories == 0:
            return 0.0 if self.macro_energy() == 0 else 1.0
        return abs(self.calories - self.macro_energy()) / self.calories

    def is_energy_consistent(self) -> bool:
        return self.energy_gap() <= ENERGY_TOLERANCE

    def as_log_fields(self) -> dict[str, object]:
        """Fields applied to a log entry once the estimate is ready."""
        return {
            "calories": self.calories,
            "protein_g": self.protein_g,
            "carbs_g": self.carbs_g,
            "fat_g": self.fat_g,
            "nutrition_confidence": self.confidence.value,
            "nutrition_assumptions": list(self.assumptions),
        }
