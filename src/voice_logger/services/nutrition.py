"""Calorie and macro estimation from natural-language food descriptions."""

import logging
import re
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from voice_logger.domain.errors import (
    EstimationUnavailable,
    SchemaValidationError,
    TransportError,
)
from voice_logger.domain.food_reference import lookup_food, normalize_food_name
from voice_logger.domain.nutrition import (
    ZERO_MACROS,
    ComponentEstimate,
    FoodReference,
    MacroProfile,
    NutritionConfidence,
    NutritionEstimate,
)
from voice_logger.services.cache import Cache, InMemoryCache
from voice_logger.services.completion import StructuredCompletionService

_SPLIT_RE = re.compile(r"\s*(?:,|&|\+|\band\b|\bwith\b|\bplus\b)\s*")
_MEAL_PHRASE_RE = re.compile(
    r"\bfor (?:a |my )?(?:breakfast|brunch|lunch|dinner|supper|snack|dessert)\b"
)
_TOKEN_RE = re.compile(r"\d+(?:\.\d+)?(?:/\d+)?|[a-z]+")

_NUMBER_WORDS = {
    "one": 1.0,
    "two": 2.0,
    "three": 3.0,
    "four": 4.0,
    "five": 5.0,
    "six": 6.0,
    "seven": 7.0,
    "eight": 8.0,
    "nine": 9.0,
    "ten": 10.0,
    "twelve": 12.0,
    "half": 0.5,
    "couple": 2.0,
    "few": 3.0,
}
_ARTICLES = {"a", "an"}
_SIZE_FACTORS = {
    "small": 0.75,
    "tiny": 0.75,
    "little": 0.75,
    "medium": 1.0,
    "regular": 1.0,
    "large": 1.3,
    "big": 1.3,
    "huge": 1.3,
}
_PORTION_UNITS = {
    "slice": "slice",
    "slices": "slice",
    "cup": "cup",
    "cups": "cup",
    "bowl": "bowl",
    "bowls": "bowl",
    "serving": "serving",
    "servings": "serving",
    "plate": "plate",
    "plates": "plate",
    "glass": "glass",
    "glasses": "glass",
    "can": "can",
    "cans": "can",
    "tablespoon": "tablespoon",
    "tablespoons": "tablespoon",
    "tbsp": "tablespoon",
    "scoop": "scoop",
    "scoops": "scoop",
    "handful": "handful",
    "handfuls": "handful",
    "portion": "portion",
    "portions": "portion",
    "order": "order",
    "side": "side",
    "sides": "side",
}
_WEIGHT_UNITS = {"oz", "ounce", "ounces", "g", "gram", "grams", "lb", "lbs", "pound"}
_FRIED = {"fried", "deep", "battered", "breaded"}
_BASELINE_PREPARATION = {
    "grilled",
    "baked",
    "roasted",
    "steamed",
    "boiled",
    "broiled",
    "poached",
    "scrambled",
    "mashed",
    "sauteed",
    "smoked",
    "raw",
    "toasted",
    "microwaved",
}
_ALREADY_FRIED = {"fries", "chips"}
_FILLER = {
    "i",
    "just",
    "ate",
    "eat",
    "eaten",
    "had",
    "have",
    "made",
    "make",
    "cooked",
    "cook",
    "some",
    "of",
    "the",
    "my",
    "piece",
    "pieces",
    "pan",
}

INFERENCE_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "portion": {"type": "string"},
        "calories": {"type": "number", "minimum": 0},
        "protein_g": {"type": "number", "minimum": 0},
        "fat_g": {"type": "number", "minimum": 0},
        "carbs_g": {"type": "number", "minimum": 0},
        "needs_preparation": {"type": "boolean"},
    },
    "required": [
        "portion",
        "calories",
        "protein_g",
        "fat_g",
        "carbs_g",
        "needs_preparation",
    ],
    "additionalProperties": False,
}

INFERENCE_SYSTEM = (
    "You are a nutrition reference. For the named food, describe one typical "
    "single-person portion and give its calories and grams of protein, fat "
    "and carbohydrate. Prefer USDA-style values."
)

_logger = logging.getLogger(__name__)


class FoodPortionEstimate(BaseModel):
    """Model-provided reference values for a food missing from the table."""

    portion: str
    calories: float = Field(ge=0)
    protein_g: float = Field(ge=0)
    fat_g: float = Field(ge=0)
    carbs_g: float = Field(ge=0)
    needs_preparation: bool = False


@dataclass(frozen=True)
class ParsedComponent:
    """One food mention split out of a description."""

    name: str
    quantity: float | None = None
    unit: str | None = None
    size: str | None = None
    preparation: str | None = None
    weight_given: bool = False


def parse_description(description: str) -> list[ParsedComponent]:
    """Split a food description into components with quantities and prep."""
    text = _MEAL_PHRASE_RE.sub(" ", description.lower())
    components: list[ParsedComponent] = []
    for chunk in _SPLIT_RE.split(text):
        parsed = _parse_component(chunk)
        if parsed is not None:
            components.append(parsed)
    return components


def _parse_component(chunk: str) -> ParsedComponent | None:  # noqa: PLR0912
    quantity: float | None = None
    article = False
    unit: str | None = None
    size: str | None = None
    preparation: str | None = None
    weight_given = False
    name_tokens: list[str] = []

    for token in _TOKEN_RE.findall(chunk):
        if token[0].isdigit():
            quantity = _parse_number(token)
        elif token in _ARTICLES:
            if quantity is None:
                quantity = 1.0
                article = True
        elif token in _NUMBER_WORDS and (quantity is None or article):
            # "a couple of" and "a half" override the article's implied one
            quantity = _NUMBER_WORDS[token]
            article = False
        elif token in _SIZE_FACTORS:
            size = token
        elif token in _PORTION_UNITS:
            unit = _PORTION_UNITS[token]
        elif token in _WEIGHT_UNITS:
            weight_given = True
        elif token in _FRIED:
            preparation = "fried"
        elif token in _BASELINE_PREPARATION:
            preparation = preparation or token
        elif token in _FILLER:
            continue
        else:
            name_tokens.append(token)

    if not name_tokens:
        return None
    if weight_given:
        quantity = None
        unit = None
    return ParsedComponent(
        name=" ".join(name_tokens),
        quantity=quantity,
        unit=unit,
        size=size,
        preparation=preparation,
        weight_given=weight_given,
    )


def _parse_number(token: str) -> float:
    if "/" in token:
        numerator, denominator = token.split("/", 1)
        if float(denominator) == 0:
            return float(numerator)
        return float(numerator) / float(denominator)
    return float(token)


@dataclass(frozen=True)
class _ComponentResult:
    estimate: ComponentEstimate
    assumptions: list[str]
    confidence: NutritionConfidence


@dataclass
class NutritionEstimator:
    """Estimates calories and macros for a described food or meal.

    Components are matched against the curated reference table. Foods missing
    from the table are looked up once through the completion service and
    cached. Every guessed attribute (portion, preparation, vague dish) is
    recorded as an assumption and lowers the confidence.
    """

    completion: StructuredCompletionService | None = None
    cache: Cache = field(default_factory=InMemoryCache)
    inferred_ttl_seconds: int = 86400
    debug: bool = False

    async def estimate(self, description: str) -> NutritionEstimate:
        """Estimate nutrition for a food description."""
        components = parse_description(description)
        if not components:
            raise EstimationUnavailable(f"no food found in {description!r}")

        total = ZERO_MACROS
        assumptions: list[str] = []
        confidences: list[NutritionConfidence] = []
        estimates: list[ComponentEstimate] = []
        for component in components:
            result = await self._estimate_component(component)
            total = total.plus(result.estimate.macros)
            estimates.append(result.estimate)
            assumptions.extend(result.assumptions)
            confidences.append(result.confidence)

        estimate = NutritionEstimate(
            calories=_round_to(total.calories, 5),
            protein_g=_round_to(total.protein_g, 1),
            carbs_g=_round_to(total.carbs_g, 1),
            fat_g=_round_to(total.fat_g, 1),
            confidence=_combine(confidences),
            assumptions=assumptions,
            components=estimates,
        )
        if not estimate.is_energy_consistent():
            assumptions.append(
                "Calories differ from macro energy by "
                f"{estimate.energy_gap():.0%} due to rounding or mixed sources."
            )
        if self.debug:
            _logger.info(
                "Nutrition estimate: description=%s calories=%s confidence=%s",
                description,
                estimate.calories,
                estimate.confidence.value,
            )
        return estimate

    async def _estimate_component(self, component: ParsedComponent) -> _ComponentResult:
        assumptions: list[str] = []
        confidence = NutritionConfidence.HIGH
        match = lookup_food(component.name)
        if match is not None:
            reference = match.reference
            units_per_portion = match.units_per_portion
            source = "reference"
        else:
            reference = await self._infer_reference(component.name)
            units_per_portion = 1.0
            source = "inferred"
            confidence = NutritionConfidence.MEDIUM
            assumptions.append(
                f"No reference values for {component.name}; used a general "
                f"estimate for {reference.portion}."
            )

        if component.quantity is None:
            factor = 1.0
            confidence = _lower(confidence, NutritionConfidence.MEDIUM)
            if component.weight_given:
                assumptions.append(
                    f"Weight for {component.name} was treated as one standard "
                    f"portion ({reference.portion})."
                )
            else:
                assumptions.append(
                    f"Assumed one standard portion of {component.name} "
                    f"({reference.portion})."
                )
        elif component.unit is not None:
            factor = component.quantity
        else:
            factor = component.quantity / units_per_portion

        if component.size is not None:
            factor *= _SIZE_FACTORS[component.size]

        base = reference.macros.scaled(factor)
        macros = base
        if component.preparation == "fried" and reference.name not in _ALREADY_FRIED:
            macros = MacroProfile(
                calories=base.calories * 2,
                protein_g=base.protein_g,
                fat_g=base.fat_g + base.calories / 9,
                carbs_g=base.carbs_g,
            )
        elif component.preparation is None and reference.needs_preparation:
            confidence = _lower(confidence, NutritionConfidence.MEDIUM)
            assumptions.append(
                f"Assumed {component.name} was cooked without much added fat "
                "(grilled or baked)."
            )

        if reference.vague:
            confidence = NutritionConfidence.LOW
            assumptions.append(
                f"{component.name.capitalize()} varies widely; assumed "
                f"{reference.portion}."
            )

        return _ComponentResult(
            estimate=ComponentEstimate(
                name=component.name, quantity=factor, macros=macros, source=source
            ),
            assumptions=assumptions,
            confidence=confidence,
        )

    async def _infer_reference(self, name: str) -> FoodReference:
        cache_key = f"food:{normalize_food_name(name)}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, FoodReference):
            return cached
        if self.completion is None:
            raise EstimationUnavailable(f"no reference values for {name!r}")
        try:
            inferred = await self.completion.run(
                name="food_portion_estimate",
                schema=INFERENCE_SCHEMA,
                system=INFERENCE_SYSTEM,
                prompt=f"Food: {name}",
                response_model=FoodPortionEstimate,
            )
        except (TransportError, SchemaValidationError) as exc:
            _logger.warning("Food inference failed for %s: %s", name, exc)
            raise EstimationUnavailable(f"could not estimate {name!r}") from exc
        reference = FoodReference(
            name=name,
            portion=inferred.portion,
            macros=MacroProfile(
                calories=inferred.calories,
                protein_g=inferred.protein_g,
                fat_g=inferred.fat_g,
                carbs_g=inferred.carbs_g,
            ),
            needs_preparation=inferred.needs_preparation,
        )
        self.cache.set(cache_key, reference, ttl_seconds=self.inferred_ttl_seconds)
        return reference


_RANK = {
    NutritionConfidence.HIGH: 2,
    NutritionConfidence.MEDIUM: 1,
    NutritionConfidence.LOW: 0,
}


def _lower(
    current: NutritionConfidence, ceiling: NutritionConfidence
) -> NutritionConfidence:
    return current if _RANK[current] <= _RANK[ceiling] else ceiling


def _combine(confidences: list[NutritionConfidence]) -> NutritionConfidence:
    return min(confidences, key=_RANK.__getitem__)


def _round_to(value: float, step: int) -> int:
    return max(0, int(step * round(value / step)))
