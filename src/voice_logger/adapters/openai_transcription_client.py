"""OpenAI audio transcription client."""

from dataclasses import dataclass

from openai import AsyncOpenAI

from voice_logger.services.transcription import TranscriptionClient

# Only whisper-1 returns language and duration.
_VERBOSE_MODELS = {"whisper-1"}


@dataclass
class OpenAITranscriptionClient(TranscriptionClient):
    client: AsyncOpenAI

    async def transcribe(
        self, *, model: str, audio: bytes, filename: str, prompt: str | None
    ) -> dict[str, object]:
        request_payload: dict[str, object] = {
            "model": model,
            "file": (filename, audio),
            "response_format": "verbose_json" if model in _VERBOSE_MODELS else "json",
        }
        if prompt:
            request_payload["prompt"] = prompt

        response = await self.client.audio.transcriptions.create(**request_payload)
        return {
            "text": response.text,
            "language": getattr(response, "language", None),
            "duration": getattr(response, "duration", None),
        }
