"""Voice logging state machine: audio in, persisted log entries out."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import TypeVar

from voice_logger.domain.errors import (
    ClassificationFailed,
    ErrorCategory,
    ExecutionFailed,
    ExtractionFailed,
    SessionActiveError,
    StageTimeoutError,
    TranscriptionFailed,
    VoiceLoggerError,
)
from voice_logger.domain.sessions import (
    AudioClip,
    OutcomeStatus,
    PipelineOutcome,
    PipelineSession,
    PipelineState,
)
from voice_logger.services.clock import Clock
from voice_logger.services.executor import ActionExecutor
from voice_logger.services.extraction import ActionExtractor
from voice_logger.services.intent import IntentClassifier
from voice_logger.services.transcription import TranscriptionService

T = TypeVar("T")

StateListener = Callable[[PipelineState, PipelineSession | None], None]

_logger = logging.getLogger(__name__)


@dataclass
class VoicePipeline:
    """Runs one recording through transcription, classification, extraction
    and execution.

    Only one session runs at a time. Every network stage has its own timeout
    and the whole session has a global one; no stage is retried here (the
    retry policy lives inside the service calls). ``failed`` returns to
    ``idle`` straight away, ``completed`` after a short grace period so a UI
    can show the result.
    """

    transcriber: TranscriptionService
    classifier: IntentClassifier
    extractor: ActionExtractor
    executor: ActionExecutor
    clock: Clock
    stage_timeout_seconds: float = 15.0
    global_timeout_seconds: float = 30.0
    completed_grace_seconds: float = 1.5
    _state: PipelineState = field(default=PipelineState.IDLE, init=False)
    _session: PipelineSession | None = field(default=None, init=False)
    _listeners: list[StateListener] = field(default_factory=list, init=False)
    _task: "asyncio.Task[PipelineOutcome] | None" = field(default=None, init=False)
    _cancel_requested: bool = field(default=False, init=False)
    _reset_handle: asyncio.TimerHandle | None = field(default=None, init=False)

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def session(self) -> PipelineSession | None:
        return self._session

    def add_listener(self, listener: StateListener) -> None:
        """Call ``listener(state, session)`` on every state change."""
        self._listeners.append(listener)

    async def process(self, audio: AudioClip) -> PipelineOutcome:
        """Run a full session for a finished recording."""
        if self._state == PipelineState.COMPLETED:
            # A new recording ends the grace period early.
            self._reset_to_idle()
        if self._state != PipelineState.IDLE or self._task is not None:
            raise SessionActiveError(f"a session is {self._state.value}")

        session = PipelineSession(audio=audio, started_at=self.clock.now())
        if audio.is_empty():
            _logger.info("Empty recording, session %s cancelled", session.id)
            return PipelineOutcome.from_session(
                replace(
                    session,
                    error_category=ErrorCategory.CANCELLED,
                    error_message="recording was empty",
                ),
                OutcomeStatus.CANCELLED,
            )

        self._session = session
        self._cancel_requested = False
        self._task = asyncio.create_task(self._run(), name=f"voice:{session.id}")
        try:
            return await self._task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if self._cancel_requested and (current is None or not current.cancelling()):
                return self._finish_cancelled()
            self._reset_to_idle()
            raise
        except VoiceLoggerError as exc:
            return self._finish_failed(exc, exc.category)
        except Exception as exc:
            _logger.exception("Voice session crashed")
            return self._finish_failed(exc, ErrorCategory.EXECUTION)

    def cancel(self) -> bool:
        """Abort the in-flight session; return False when none is running."""
        if self._task is None or self._task.done():
            return False
        _logger.info("Cancelling session in state %s", self._state.value)
        self._cancel_requested = True
        self._task.cancel()
        return True

    async def _run(self) -> PipelineOutcome:
        try:
            async with asyncio.timeout(self.global_timeout_seconds):
                return await self._run_stages()
        except TimeoutError as exc:
            raise StageTimeoutError("session", self.global_timeout_seconds) from exc

    async def _run_stages(self) -> PipelineOutcome:
        session = self._advance(PipelineState.TRANSCRIBING)
        transcript = await self._stage(
            self.transcriber.transcribe(session.audio), TranscriptionFailed
        )
        text = transcript.text

        self._advance(PipelineState.CLASSIFYING, transcript=text)
        intent = await self._stage(self.classifier.classify(text), ClassificationFailed)
        if not intent.has_action:
            _logger.info("No loggable action: %s", intent.reason)
            return self._finish_completed(has_action=False)

        self._advance(PipelineState.EXTRACTING, has_action=True)
        actions = await self._stage(
            self.extractor.extract(text, self.clock.now()), ExtractionFailed
        )
        if not actions:
            return self._finish_completed(extracted_actions=[])

        self._advance(PipelineState.EXECUTING, extracted_actions=actions)
        execution = await self.executor.execute(actions)
        if execution.all_failed:
            self._session = replace(self._current(), execution=execution)
            first_error = execution.failed[0][1]
            raise ExecutionFailed(
                f"all {len(execution.failed)} action(s) failed: {first_error}"
            )
        return self._finish_completed(
            executed_actions=list(execution.succeeded), execution=execution
        )

    async def _stage(
        self,
        awaitable: Awaitable[T],
        failure: type[TranscriptionFailed | ClassificationFailed | ExtractionFailed],
    ) -> T:
        stage = self._state.value
        try:
            return await asyncio.wait_for(awaitable, self.stage_timeout_seconds)
        except TimeoutError as exc:
            raise StageTimeoutError(stage, self.stage_timeout_seconds) from exc
        except failure:
            raise
        except Exception as exc:
            raise failure(exc) from exc

    def _current(self) -> PipelineSession:
        if self._session is None:
            raise RuntimeError("no active session")
        return self._session

    def _advance(self, state: PipelineState, **changes: object) -> PipelineSession:
        session = self._current().advance(state, **changes)
        self._session = session
        self._set_state(state)
        _logger.info("Session %s -> %s", session.id, state.value)
        return session

    def _finish_completed(self, **changes: object) -> PipelineOutcome:
        session = self._advance(PipelineState.COMPLETED, **changes)
        outcome = PipelineOutcome.from_session(session, OutcomeStatus.COMPLETED)
        self._task = None
        if self.completed_grace_seconds <= 0:
            self._reset_to_idle()
        else:
            loop = asyncio.get_running_loop()
            self._reset_handle = loop.call_later(
                self.completed_grace_seconds, self._reset_to_idle
            )
        return outcome

    def _finish_failed(
        self, exc: BaseException, category: ErrorCategory
    ) -> PipelineOutcome:
        _logger.warning("Session failed (%s): %s", category.value, exc)
        session = self._advance(
            PipelineState.FAILED,
            error_message=str(exc),
            error_category=category,
        )
        outcome = PipelineOutcome.from_session(session, OutcomeStatus.FAILED)
        self._reset_to_idle()
        return outcome

    def _finish_cancelled(self) -> PipelineOutcome:
        session = replace(
            self._current(),
            error_category=ErrorCategory.CANCELLED,
            error_message="cancelled by user",
        )
        outcome = PipelineOutcome.from_session(session, OutcomeStatus.CANCELLED)
        self._reset_to_idle()
        return outcome

    def _reset_to_idle(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None
        self._task = None
        self._cancel_requested = False
        self._session = None
        if self._state != PipelineState.IDLE:
            self._set_state(PipelineState.IDLE)

    def _set_state(self, state: PipelineState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state, self._session)
            except Exception:
                _logger.exception("State listener failed")
