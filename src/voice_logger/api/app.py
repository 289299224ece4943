"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import FastAPI, HTTPException, Request

from voice_logger.app_logging import configure_logging
from voice_logger.containers import AppContainer
from voice_logger.domain.errors import LogEntryNotFound, SessionActiveError
from voice_logger.domain.sessions import AudioClip, PipelineOutcome

DEFAULT_AUDIO_FILENAME = "audio.m4a"


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(debug=container.settings.debug)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/voice/state")
    async def voice_state(request: Request) -> dict[str, object]:
        pipeline = request.app.state.container.pipeline
        session = pipeline.session
        return {
            "state": pipeline.state.value,
            "session_id": str(session.id) if session else None,
            "pending_enrichment": [
                str(entry_id)
                for entry_id in request.app.state.container.enrichment.pending()
            ],
        }

    @app.post("/voice/sessions")
    async def create_voice_session(request: Request) -> dict[str, object]:
        """Run a finished recording (raw audio body) through the pipeline."""
        state_container: AppContainer = request.app.state.container
        audio = AudioClip(
            data=await request.body(),
            filename=request.headers.get("x-audio-filename") or DEFAULT_AUDIO_FILENAME,
        )
        try:
            outcome = await state_container.pipeline.process(audio)
        except SessionActiveError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        logger.info(
            "Voice session %s finished: %s", outcome.session_id, outcome.status.value
        )
        return _outcome_payload(outcome)

    @app.post("/voice/sessions/cancel")
    async def cancel_voice_session(request: Request) -> dict[str, bool]:
        return {"cancelled": request.app.state.container.pipeline.cancel()}

    @app.get("/logs/{entry_id}")
    async def get_log(entry_id: UUID, request: Request) -> dict[str, object]:
        """Fetch an entry, e.g. to poll its nutrition status."""
        try:
            entry = request.app.state.container.log_service.get(entry_id)
        except LogEntryNotFound as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return entry.to_record()

    @app.delete("/logs/{entry_id}")
    async def delete_log(entry_id: UUID, request: Request) -> dict[str, str]:
        """Delete a log entry and stop its nutrition enrichment."""
        try:
            request.app.state.container.log_service.delete(entry_id)
        except LogEntryNotFound as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"status": "deleted"}

    return app


def _outcome_payload(outcome: PipelineOutcome) -> dict[str, object]:
    execution = outcome.execution
    return {
        "session_id": str(outcome.session_id),
        "status": outcome.status.value,
        "transcript": outcome.transcript,
        "actions": [
            {**action.model_dump(mode="json"), "summary": action.summary()}
            for action in outcome.actions
        ],
        "entry_ids": [str(entry_id) for entry_id in execution.entry_ids]
        if execution
        else [],
        "failed_actions": [
            {"action_type": action.action_type.value, "error": str(error)}
            for action, error in execution.failed
        ]
        if execution
        else [],
        "error_category": outcome.error_category.value
        if outcome.error_category
        else None,
        "error_message": outcome.error_message,
        "history": [state.value for state in outcome.history],
    }
