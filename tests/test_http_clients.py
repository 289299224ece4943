"""Tests for OpenAI-backed adapters."""

import asyncio
import json

import pytest

from voice_logger.adapters.openai_completion_client import OpenAICompletionClient
from voice_logger.adapters.openai_transcription_client import (
    OpenAITranscriptionClient,
)
from voice_logger.domain.errors import SchemaValidationError


class _FakeResponses:
    def __init__(self, output_text: str) -> None:
        self.output_text = output_text
        self.last_payload: dict[str, object] | None = None

    async def create(self, **kwargs):  # type: ignore[no-untyped-def]
        self.last_payload = kwargs
        return type("Resp", (), {"output_text": self.output_text})()


class _FakeTranscriptions:
    def __init__(self) -> None:
        self.last_payload: dict[str, object] | None = None

    async def create(self, **kwargs):  # type: ignore[no-untyped-def]
        self.last_payload = kwargs
        return type(
            "Transcription", (), {"text": " I had water ", "language": "english"}
        )()


class _FakeAudio:
    def __init__(self) -> None:
        self.transcriptions = _FakeTranscriptions()


class _FakeOpenAI:
    def __init__(self, output_text: str = "{}") -> None:
        self.responses = _FakeResponses(output_text)
        self.audio = _FakeAudio()


def _complete(client: OpenAICompletionClient, reasoning_effort: str | None = None):
    return asyncio.run(
        client.complete(
            model="gpt-5-mini",
            reasoning_effort=reasoning_effort,
            store=False,
            name="voice_actions",
            schema={"type": "object"},
            system="Extract actions",
            prompt="I had a glass of water",
        )
    )


def test_completion_client_parses_output() -> None:
    fake = _FakeOpenAI(json.dumps({"actions": []}))
    client = OpenAICompletionClient(client=fake)

    result = _complete(client, reasoning_effort="low")

    assert result == {"actions": []}
    payload = fake.responses.last_payload
    assert payload["text"]["format"]["name"] == "voice_actions"
    assert payload["text"]["format"]["strict"] is True
    assert payload["reasoning"] == {"effort": "low"}
    assert [message["role"] for message in payload["input"]] == ["system", "user"]


def test_completion_client_omits_reasoning_when_unset() -> None:
    fake = _FakeOpenAI(json.dumps({"actions": []}))

    _complete(OpenAICompletionClient(client=fake))

    assert "reasoning" not in fake.responses.last_payload


@pytest.mark.parametrize("output_text", ["", "not json", "[1, 2]"])
def test_completion_client_rejects_bad_output(output_text: str) -> None:
    client = OpenAICompletionClient(client=_FakeOpenAI(output_text))

    with pytest.raises(SchemaValidationError):
        _complete(client)


def test_transcription_client_sends_file_and_prompt() -> None:
    fake = _FakeOpenAI()
    client = OpenAITranscriptionClient(client=fake)

    result = asyncio.run(
        client.transcribe(
            model="whisper-1",
            audio=b"audio-bytes",
            filename="note.m4a",
            prompt="Health journal",
        )
    )

    payload = fake.audio.transcriptions.last_payload
    assert payload["file"] == ("note.m4a", b"audio-bytes")
    assert payload["response_format"] == "verbose_json"
    assert payload["prompt"] == "Health journal"
    assert result == {"text": " I had water ", "language": "english", "duration": None}


def test_transcription_client_uses_plain_json_for_newer_models() -> None:
    fake = _FakeOpenAI()
    client = OpenAITranscriptionClient(client=fake)

    asyncio.run(
        client.transcribe(
            model="gpt-4o-mini-transcribe",
            audio=b"audio-bytes",
            filename="note.m4a",
            prompt=None,
        )
    )

    payload = fake.audio.transcriptions.last_payload
    assert payload["response_format"] == "json"
    assert "prompt" not in payload
