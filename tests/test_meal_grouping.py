"""Tests for meal grouping rules."""

import logging

from voice_logger.domain.actions import (
    ActionDetails,
    ActionType,
    MealClassification,
    MealComponent,
    VoiceAction,
)
from voice_logger.domain.timing import TimeExpression
from voice_logger.services.meal_grouping import (
    CuratedPairingPolicy,
    MealGrouper,
    SpannedAction,
    locate_span,
)


def _food(transcript: str, item: str, time: TimeExpression | None = None):
    action = VoiceAction(
        action_type=ActionType.LOG_FOOD,
        confidence=0.9,
        details=ActionDetails(item=item, meal_type=MealClassification.SINGLE_ITEM),
    )
    return SpannedAction(
        action=action,
        span=item,
        start=locate_span(transcript, item),
        time=time or TimeExpression.none(),
    )


def _meal(transcript: str, *names: str) -> SpannedAction:
    action = VoiceAction(
        action_type=ActionType.LOG_FOOD,
        confidence=0.8,
        details=ActionDetails(
            meal_type=MealClassification.MEAL_COMBINATION,
            meal_name=" and ".join(names),
            components=[MealComponent(name=name) for name in names],
        ),
    )
    return SpannedAction(action=action, span=transcript, start=0)


def test_paired_foods_merge_without_framing() -> None:
    transcript = "I had a burger and fries"
    items = [_food(transcript, "burger"), _food(transcript, "fries")]

    (merged,) = MealGrouper().group(transcript, items)

    assert merged.action.is_compound_meal
    assert merged.span == "burger and fries"
    assert merged.action.details.meal_name == "burger and fries"


def test_meal_context_phrase_merges() -> None:
    transcript = "For lunch I had soup and crackers"
    items = [_food(transcript, "soup"), _food(transcript, "crackers")]

    (merged,) = MealGrouper().group(transcript, items)

    assert [item.name for item in merged.action.details.components] == [
        "soup",
        "crackers",
    ]


def test_separation_words_keep_foods_apart() -> None:
    transcript = "I made eggs and then later toast"
    items = [_food(transcript, "eggs"), _food(transcript, "toast")]

    result = MealGrouper().group(transcript, items)

    assert len(result) == 2
    assert not any(item.action.is_compound_meal for item in result)


def test_different_time_references_stay_separate() -> None:
    transcript = "I made eggs and toast"
    items = [
        _food(transcript, "eggs", TimeExpression(meal="breakfast")),
        _food(transcript, "toast", TimeExpression(meal="lunch")),
    ]

    assert len(MealGrouper().group(transcript, items)) == 2


def test_ambiguous_unpaired_foods_stay_separate(caplog, monkeypatch) -> None:
    monkeypatch.setattr(logging.getLogger("voice_logger"), "propagate", True)
    transcript = "I had an apple and a cookie"
    items = [_food(transcript, "apple"), _food(transcript, "cookie")]

    with caplog.at_level("INFO", logger="voice_logger.services.meal_grouping"):
        result = MealGrouper().group(transcript, items)

    assert len(result) == 2
    assert "Ambiguous" in caplog.text


def test_three_foods_chain_into_one_meal() -> None:
    transcript = "I cooked chicken, rice and beans"
    items = [
        _food(transcript, "chicken"),
        _food(transcript, "rice"),
        _food(transcript, "beans"),
    ]

    (merged,) = MealGrouper().group(transcript, items)

    assert len(merged.action.details.components) == 3


def test_compound_meal_split_on_separation_words() -> None:
    transcript = "I had eggs, then later a banana"
    meal = _meal(transcript, "eggs", "banana")

    result = MealGrouper().group(transcript, [meal])

    assert [item.action.details.item for item in result] == ["eggs", "banana"]
    assert all(
        item.action.details.meal_type == MealClassification.SINGLE_ITEM
        for item in result
    )


def test_compound_meal_without_separation_is_kept() -> None:
    transcript = "I made porkchops and potatoes"
    meal = _meal(transcript, "porkchops", "potatoes")

    (result,) = MealGrouper().group(transcript, [meal])

    assert result is meal


def test_pairing_policy_matches_plural_forms() -> None:
    policy = CuratedPairingPolicy()

    assert policy.is_paired("porkchops", "potatoes")
    assert policy.is_paired("peanut butter", "jelly")
    assert not policy.is_paired("apple", "cookie")


def test_custom_pairing_policy_is_used() -> None:
    class AlwaysPaired:
        def is_paired(self, first: str, second: str) -> bool:
            return True

    transcript = "I had an apple and a cookie"
    items = [_food(transcript, "apple"), _food(transcript, "cookie")]

    (merged,) = MealGrouper(pairing=AlwaysPaired()).group(transcript, items)

    assert merged.action.is_compound_meal
