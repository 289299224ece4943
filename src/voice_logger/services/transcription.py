"""Speech-to-text for recorded audio clips."""

from dataclasses import dataclass, field
from typing import Protocol

from pydantic import BaseModel, ValidationError

from voice_logger.domain.errors import SchemaValidationError
from voice_logger.domain.sessions import AudioClip
from voice_logger.services.retry import RetryPolicy

TRANSCRIPTION_PROMPT = (
    "Health log dictation: food, water, symptoms, vitamins and supplements."
)


class Transcript(BaseModel):
    """Recognized text of a recording."""

    text: str
    language: str | None = None
    duration: float | None = None


class TranscriptionClient(Protocol):
    """Interface for a speech-to-text backend."""

    async def transcribe(
        self, *, model: str, audio: bytes, filename: str, prompt: str | None
    ) -> dict[str, object]:
        """Return the raw transcription payload."""


@dataclass
class TranscriptionService:
    client: TranscriptionClient
    model: str
    prompt: str | None = TRANSCRIPTION_PROMPT
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    async def transcribe(self, clip: AudioClip) -> Transcript:
        raw = await self.retry.call(
            lambda: self.client.transcribe(
                model=self.model,
                audio=clip.data,
                filename=clip.filename,
                prompt=self.prompt,
            ),
            action="transcription",
        )
        try:
            transcript = Transcript.model_validate(raw)
        except ValidationError as exc:
            raise SchemaValidationError("transcription payload malformed") from exc
        return transcript.model_copy(update={"text": transcript.text.strip()})
