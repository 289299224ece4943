"""Tests for the voice logging state machine."""

import asyncio
from datetime import timedelta

import pytest

from tests.conftest import (
    AUDIO,
    NOW,
    FakeCompletionClient,
    FakeTranscriptionClient,
    build_harness,
    component,
    raw_action,
)
from voice_logger.domain.errors import ErrorCategory, SessionActiveError, TransportError
from voice_logger.domain.logs import LogType, NutritionStatus
from voice_logger.domain.sessions import AudioClip, OutcomeStatus, PipelineState


def _water_symptom_response() -> dict[str, object]:
    return {
        "actions": [
            raw_action("log_water", "a glass of water", amount="1", unit="glass"),
            raw_action(
                "log_symptom",
                "I threw up 30 minutes ago",
                kind="relative",
                offset_minutes=30,
                symptoms=["vomiting"],
            ),
        ]
    }


def test_water_and_symptom_are_logged() -> None:
    harness = build_harness(
        transcript="I had a glass of water and I threw up 30 minutes ago"
    )
    harness.completion_client.script("voice_actions", _water_symptom_response())

    outcome = asyncio.run(harness.pipeline.process(AUDIO))

    assert outcome.status == OutcomeStatus.COMPLETED
    assert len(outcome.execution.entry_ids) == 2
    (water,) = harness.log_repository.of_type(LogType.WATER)
    (symptom,) = harness.log_repository.of_type(LogType.SYMPTOM)
    assert water.date == NOW
    assert symptom.date == NOW - timedelta(minutes=30)
    assert harness.completion_client.calls_for("intent_classification") == []
    assert outcome.history == (
        PipelineState.IDLE,
        PipelineState.TRANSCRIBING,
        PipelineState.CLASSIFYING,
        PipelineState.EXTRACTING,
        PipelineState.EXECUTING,
        PipelineState.COMPLETED,
    )
    assert harness.pipeline.state == PipelineState.IDLE


def test_no_action_skips_extraction() -> None:
    harness = build_harness(transcript="What's the weather tomorrow?")
    harness.completion_client.script(
        "intent_classification",
        {"has_action": False, "confidence": 0.9, "reason": "question"},
    )

    outcome = asyncio.run(harness.pipeline.process(AUDIO))

    assert outcome.status == OutcomeStatus.COMPLETED
    assert outcome.actions == []
    assert harness.completion_client.calls_for("voice_actions") == []
    assert harness.log_repository.entries == {}
    assert PipelineState.EXTRACTING not in outcome.history


def test_food_is_logged_then_enriched() -> None:
    transcript = "I made porkchops and potatoes for dinner"
    harness = build_harness(transcript=transcript)
    harness.completion_client.script(
        "voice_actions",
        {
            "actions": [
                raw_action(
                    "log_food",
                    transcript,
                    kind="meal",
                    meal="dinner",
                    meal_type="meal_combination",
                    meal_name="porkchops and potatoes",
                    components=[component("porkchops"), component("potatoes")],
                )
            ]
        },
    )

    async def run():
        outcome = await harness.pipeline.process(AUDIO)
        (entry,) = harness.log_repository.of_type(LogType.FOOD)
        status = entry.nutrition_status
        await harness.enrichment.drain()
        return outcome, status

    outcome, status_at_completion = asyncio.run(run())

    assert outcome.status == OutcomeStatus.COMPLETED
    assert status_at_completion == NutritionStatus.PENDING
    (entry,) = harness.log_repository.of_type(LogType.FOOD)
    assert entry.nutrition_status == NutritionStatus.READY
    assert entry.calories > 0
    assert entry.meal_type == "dinner"


def test_empty_action_list_completes() -> None:
    harness = build_harness(transcript="I had a long day")
    harness.completion_client.script("voice_actions", {"actions": []})

    outcome = asyncio.run(harness.pipeline.process(AUDIO))

    assert outcome.status == OutcomeStatus.COMPLETED
    assert PipelineState.EXECUTING not in outcome.history


def test_all_actions_failing_fails_session() -> None:
    harness = build_harness(transcript="I drank a glass of water")
    harness.log_repository.failing_types.add(LogType.WATER)
    harness.completion_client.script(
        "voice_actions",
        {"actions": [raw_action("log_water", "a glass of water")]},
    )

    outcome = asyncio.run(harness.pipeline.process(AUDIO))

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.error_category == ErrorCategory.EXECUTION
    assert len(outcome.execution.failed) == 1
    assert harness.pipeline.state == PipelineState.IDLE


def test_partial_failure_still_completes() -> None:
    harness = build_harness(
        transcript="I had a glass of water and I threw up 30 minutes ago"
    )
    harness.log_repository.failing_types.add(LogType.SYMPTOM)
    harness.completion_client.script("voice_actions", _water_symptom_response())

    outcome = asyncio.run(harness.pipeline.process(AUDIO))

    assert outcome.status == OutcomeStatus.COMPLETED
    assert len(outcome.execution.succeeded) == 1
    assert len(outcome.execution.failed) == 1


def test_stage_timeout_fails_with_timeout() -> None:
    completion_client = FakeCompletionClient(delays={"voice_actions": 1.0})
    completion_client.script("voice_actions", {"actions": []})
    harness = build_harness(
        transcript="I ate an apple",
        completion_client=completion_client,
        stage_timeout_seconds=0.05,
    )

    outcome = asyncio.run(harness.pipeline.process(AUDIO))

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.error_category == ErrorCategory.TIMEOUT
    assert "extracting timed out" in outcome.error_message
    assert harness.pipeline.state == PipelineState.IDLE


def test_global_timeout_covers_the_whole_session() -> None:
    harness = build_harness(
        transcription_client=FakeTranscriptionClient(text="water", delay=1.0),
        stage_timeout_seconds=5.0,
        global_timeout_seconds=0.05,
    )

    outcome = asyncio.run(harness.pipeline.process(AUDIO))

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.error_category == ErrorCategory.TIMEOUT
    assert "session timed out" in outcome.error_message


def test_transcription_failure_is_transport() -> None:
    harness = build_harness(
        transcription_client=FakeTranscriptionClient(
            error=TransportError("service unavailable", status_code=503)
        )
    )

    outcome = asyncio.run(harness.pipeline.process(AUDIO))

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.error_category == ErrorCategory.TRANSPORT
    assert outcome.history[-1] == PipelineState.FAILED


def test_classifier_failure_fails_session() -> None:
    harness = build_harness(transcript="Hmm, not sure")
    harness.completion_client.script(
        "intent_classification", TransportError("server error", status_code=500)
    )

    outcome = asyncio.run(harness.pipeline.process(AUDIO))

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.error_category == ErrorCategory.TRANSPORT
    assert harness.completion_client.calls_for("voice_actions") == []


def test_malformed_extraction_is_validation_failure() -> None:
    harness = build_harness(transcript="I ate an apple")
    harness.completion_client.script("voice_actions", {"unexpected": True})

    outcome = asyncio.run(harness.pipeline.process(AUDIO))

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.error_category == ErrorCategory.VALIDATION


def test_empty_recording_is_cancelled() -> None:
    harness = build_harness(transcript="water")

    outcome = asyncio.run(harness.pipeline.process(AudioClip(data=b"")))

    assert outcome.status == OutcomeStatus.CANCELLED
    assert harness.transcription_client.calls == []
    assert harness.pipeline.state == PipelineState.IDLE


def test_second_session_is_rejected_while_active() -> None:
    harness = build_harness(
        transcription_client=FakeTranscriptionClient(text="water", delay=0.2)
    )
    harness.completion_client.script("voice_actions", {"actions": []})

    async def run() -> None:
        first = asyncio.create_task(harness.pipeline.process(AUDIO))
        await asyncio.sleep(0.01)
        with pytest.raises(SessionActiveError):
            await harness.pipeline.process(AUDIO)
        await first

    asyncio.run(run())

    assert len(harness.transcription_client.calls) == 1


def test_cancel_returns_to_idle() -> None:
    harness = build_harness(
        transcription_client=FakeTranscriptionClient(text="water", delay=1.0)
    )

    async def run():
        task = asyncio.create_task(harness.pipeline.process(AUDIO))
        while harness.pipeline.state != PipelineState.TRANSCRIBING:
            await asyncio.sleep(0)
        assert harness.pipeline.cancel() is True
        return await task

    outcome = asyncio.run(run())

    assert outcome.status == OutcomeStatus.CANCELLED
    assert outcome.error_category == ErrorCategory.CANCELLED
    assert harness.pipeline.state == PipelineState.IDLE
    assert harness.pipeline.cancel() is False
    assert harness.log_repository.entries == {}


def test_listeners_see_every_transition() -> None:
    harness = build_harness(transcript="I drank a glass of water")
    harness.completion_client.script(
        "voice_actions", {"actions": [raw_action("log_water", "a glass of water")]}
    )
    seen: list[PipelineState] = []

    def broken_listener(state, session) -> None:
        raise RuntimeError("listener bug")

    harness.pipeline.add_listener(broken_listener)
    harness.pipeline.add_listener(lambda state, session: seen.append(state))

    asyncio.run(harness.pipeline.process(AUDIO))

    assert seen == [
        PipelineState.TRANSCRIBING,
        PipelineState.CLASSIFYING,
        PipelineState.EXTRACTING,
        PipelineState.EXECUTING,
        PipelineState.COMPLETED,
        PipelineState.IDLE,
    ]


def test_completed_holds_for_grace_period() -> None:
    harness = build_harness(
        transcript="I drank a glass of water", completed_grace_seconds=0.05
    )
    harness.completion_client.script(
        "voice_actions", {"actions": [raw_action("log_water", "a glass of water")]}
    )

    async def run() -> list[PipelineState]:
        states = []
        await harness.pipeline.process(AUDIO)
        states.append(harness.pipeline.state)
        await harness.pipeline.process(AUDIO)
        states.append(harness.pipeline.state)
        await asyncio.sleep(0.1)
        states.append(harness.pipeline.state)
        return states

    assert asyncio.run(run()) == [
        PipelineState.COMPLETED,
        PipelineState.COMPLETED,
        PipelineState.IDLE,
    ]
    assert len(harness.log_repository.of_type(LogType.WATER)) == 2
