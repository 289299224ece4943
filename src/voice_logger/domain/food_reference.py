"""Curated per-portion reference values for common foods.

Values are rounded USDA-style figures for one standard portion. Keys are
normalized food names (lowercase letters only). A name matches on its head
noun, optionally joined with the words before it, so "pork chops" hits
"porkchop" and "peanut butter" hits "peanutbutter" before "butter".
"""

import re
from dataclasses import dataclass

from voice_logger.domain.nutrition import FoodReference, MacroProfile


@dataclass(frozen=True)
class _Row:
    portion: str
    calories: float
    protein_g: float
    fat_g: float
    carbs_g: float
    units_per_portion: float = 1.0
    needs_preparation: bool = False
    vague: bool = False
    main_ingredient: bool = True


_ROWS: dict[str, _Row] = {
    "banana": _Row("1 medium banana", 105, 1.3, 0.4, 27),
    "apple": _Row("1 medium apple", 95, 0.5, 0.3, 25),
    "orange": _Row("1 medium orange", 62, 1.2, 0.2, 15.4),
    "avocado": _Row("1 avocado", 240, 3, 22, 13),
    "walnut": _Row("1 walnut", 26, 0.6, 2.6, 0.5),
    "egg": _Row("1 large egg", 72, 6.3, 4.8, 0.4, needs_preparation=True),
    "toast": _Row("1 slice of toast", 80, 3, 1, 14),
    "bread": _Row("1 slice of bread", 80, 3, 1, 14),
    "bagel": _Row("1 bagel", 280, 11, 1.5, 55),
    "cracker": _Row("1 serving (5 crackers)", 80, 1.5, 3, 12, units_per_portion=5),
    "saltine": _Row("1 serving (5 saltines)", 65, 1.5, 1.5, 11, units_per_portion=5),
    "cookie": _Row("1 cookie", 150, 1.5, 7, 20),
    "cereal": _Row("1 bowl of cereal", 150, 3, 1.5, 33),
    "oatmeal": _Row("1 bowl of oatmeal", 160, 6, 3.2, 27),
    "yogurt": _Row("1 cup of yogurt", 150, 8.5, 8, 11.4),
    "milk": _Row("1 cup of milk", 150, 8, 8, 12, main_ingredient=False),
    "cheese": _Row("1 slice of cheese", 110, 7, 9, 0.5, main_ingredient=False),
    "butter": _Row("1 tablespoon of butter", 100, 0.1, 11.5, 0, main_ingredient=False),
    "peanutbutter": _Row(
        "2 tablespoons of peanut butter", 190, 7, 16, 7, main_ingredient=False
    ),
    "jelly": _Row("1 tablespoon of jelly", 50, 0, 0, 13, main_ingredient=False),
    "sauce": _Row("1 tablespoon of sauce", 20, 0, 0, 5, main_ingredient=False),
    "ketchup": _Row("1 tablespoon of ketchup", 20, 0, 0, 5, main_ingredient=False),
    "gravy": _Row("1/4 cup of gravy", 30, 0.5, 1.5, 3.5, main_ingredient=False),
    "porkchop": _Row(
        "1 pork chop (about 6 oz)", 300, 36, 17, 0, needs_preparation=True
    ),
    "chicken": _Row(
        "1 chicken breast (about 6 oz)", 280, 53, 6, 0, needs_preparation=True
    ),
    "steak": _Row("1 steak (about 8 oz)", 540, 62, 32, 0, needs_preparation=True),
    "salmon": _Row(
        "1 salmon fillet (about 6 oz)", 350, 38, 21, 0, needs_preparation=True
    ),
    "fish": _Row(
        "1 white fish fillet (about 6 oz)", 180, 39, 2, 0, needs_preparation=True
    ),
    "meatball": _Row("4 meatballs", 280, 18, 18, 10, units_per_portion=4),
    "burger": _Row("1 hamburger", 540, 34, 27, 40),
    "pizza": _Row("1 slice of pizza", 285, 12, 10, 36),
    "potato": _Row(
        "1 side serving (about 1.5 medium potatoes)",
        210,
        5,
        1,
        45,
        units_per_portion=1.5,
        needs_preparation=True,
    ),
    "fries": _Row("1 medium serving of fries", 365, 4, 17, 48),
    "chips": _Row("1 medium serving of chips", 365, 4, 17, 48),
    "rice": _Row("1 cup of cooked rice", 205, 4.3, 0.4, 45),
    "pasta": _Row("1 cup of cooked pasta", 220, 8, 1.3, 43),
    "noodle": _Row("1 cup of cooked noodles", 220, 8, 1.3, 43),
    "bean": _Row("1 cup of beans", 225, 15, 1, 40),
    "broccoli": _Row("1 cup of broccoli", 55, 3.7, 0.6, 10, main_ingredient=False),
    "vegetable": _Row("1 cup of vegetables", 55, 3.7, 0.6, 10, main_ingredient=False),
    "icecream": _Row("1 cup of ice cream", 275, 4.6, 14.5, 31),
    "gingerale": _Row("1 can of ginger ale", 125, 0, 0, 32),
    "salad": _Row("1 bowl of mixed salad with dressing", 150, 3, 11, 10, vague=True),
    "smoothie": _Row("1 smoothie (12 oz)", 220, 5, 2, 46, vague=True),
    "sandwich": _Row("1 sandwich", 350, 18, 13, 40, vague=True),
    "soup": _Row("1 bowl of soup", 200, 10, 7, 24, vague=True),
}

_ALIASES = {
    "hamburger": "burger",
    "cheeseburger": "burger",
    "spaghetti": "pasta",
    "yoghurt": "yogurt",
    "oat": "oatmeal",
    "veggie": "vegetable",
    "frenchfry": "fries",
    "porridge": "oatmeal",
}
# Trailing cut names: "chicken breast" is still chicken.
_CUT_WORDS = {"breast", "breasts", "fillet", "fillets", "thigh", "thighs"}
_WORD_RE = re.compile(r"[a-z]+")


@dataclass(frozen=True)
class ReferenceMatch:
    """Reference row matched for a component name."""

    key: str
    reference: FoodReference
    units_per_portion: float


def normalize_food_name(name: str) -> str:
    """Lowercase a food name and drop everything but letters."""
    return "".join(char for char in name.lower() if char.isalpha())


def lookup_food(name: str) -> ReferenceMatch | None:
    """Return the curated reference for a food name, if known.

    Only the head noun counts: "pineapple", "cheesecake" and "rice cake" are
    not apple, cheese or rice, and fall through to inference.
    """
    words = _WORD_RE.findall(name.lower())
    while len(words) > 1 and words[-1] in _CUT_WORDS:
        words.pop()
    for start in range(len(words)):
        key = _reference_key("".join(words[start:]))
        if key is not None:
            return _match(key)
    return None


def _reference_key(joined: str) -> str | None:
    for form in _singular_forms(joined):
        key = _ALIASES.get(form, form)
        if key in _ROWS:
            return key
    return None


def _singular_forms(word: str) -> list[str]:
    forms = [word]
    if word.endswith("ies"):
        forms.append(word[:-3] + "y")
    if word.endswith("es"):
        forms.append(word[:-2])
    if word.endswith("s"):
        forms.append(word[:-1])
    return forms


def _match(key: str) -> ReferenceMatch:
    row = _ROWS[key]
    return ReferenceMatch(
        key=key,
        reference=FoodReference(
            name=key,
            portion=row.portion,
            macros=MacroProfile(
                calories=row.calories,
                protein_g=row.protein_g,
                fat_g=row.fat_g,
                carbs_g=row.carbs_g,
            ),
            needs_preparation=row.needs_preparation,
            vague=row.vague,
            main_ingredient=row.main_ingredient,
        ),
        units_per_portion=row.units_per_portion,
    )


def is_main_ingredient(name: str) -> bool:
    """Primary protein or starch, as opposed to a garnish or sauce."""
    match = lookup_food(name)
    if match is None:
        return True
    return match.reference.main_ingredient
