"""Domain models for voice logging sessions."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from voice_logger.domain.actions import VoiceAction
from voice_logger.domain.errors import ErrorCategory


class PipelineState(str, Enum):
    """States of the voice logging state machine."""

    IDLE = "idle"
    TRANSCRIBING = "transcribing"
    CLASSIFYING = "classifying"
    EXTRACTING = "extracting"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class OutcomeStatus(str, Enum):
    """How a session ended from the caller's point of view."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class AudioClip:
    """Finished recording handed over by audio capture."""

    data: bytes
    filename: str = "audio.m4a"
    duration_seconds: float | None = None

    def is_empty(self) -> bool:
        return not self.data


@dataclass(frozen=True)
class ExecutionResult:
    """Per-action outcome of executing a batch of voice actions."""

    succeeded: list[VoiceAction] = field(default_factory=list)
    failed: list[tuple[VoiceAction, Exception]] = field(default_factory=list)
    entry_ids: list[UUID] = field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        return bool(self.failed) and not self.succeeded


@dataclass(frozen=True)
class PipelineSession:
    """Transient state for one recording-to-completion cycle."""

    audio: AudioClip
    started_at: datetime
    id: UUID = field(default_factory=uuid4)
    state: PipelineState = PipelineState.IDLE
    transcript: str | None = None
    has_action: bool | None = None
    extracted_actions: list[VoiceAction] = field(default_factory=list)
    executed_actions: list[VoiceAction] = field(default_factory=list)
    execution: ExecutionResult | None = None
    error_message: str | None = None
    error_category: ErrorCategory | None = None
    history: tuple[PipelineState, ...] = (PipelineState.IDLE,)

    def advance(self, state: PipelineState, **changes: object) -> "PipelineSession":
        """Return a copy moved to ``state`` with the given field changes."""
        return replace(self, state=state, history=(*self.history, state), **changes)


@dataclass(frozen=True)
class PipelineOutcome:
    """Result of a voice logging session returned to the caller."""

    session_id: UUID
    status: OutcomeStatus
    transcript: str | None = None
    actions: list[VoiceAction] = field(default_factory=list)
    execution: ExecutionResult | None = None
    error_category: ErrorCategory | None = None
    error_message: str | None = None
    history: tuple[PipelineState, ...] = ()

    @classmethod
    def from_session(
        cls, session: PipelineSession, status: OutcomeStatus
    ) -> "PipelineOutcome":
        return cls(
            session_id=session.id,
            status=status,
            transcript=session.transcript,
            actions=list(session.executed_actions or session.extracted_actions),
            execution=session.execution,
            error_category=session.error_category,
            error_message=session.error_message,
            history=session.history,
        )
