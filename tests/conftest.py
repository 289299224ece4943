"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest

from voice_logger.config import Settings
from voice_logger.containers import AppContainer
from voice_logger.domain.errors import LogEntryNotFound
from voice_logger.domain.logs import LogEntry, LogType, NutritionStatus
from voice_logger.domain.sessions import AudioClip
from voice_logger.services.cache import InMemoryCache
from voice_logger.services.completion import (
    CompletionClient,
    StructuredCompletionService,
)
from voice_logger.services.enrichment import NutritionEnrichmentQueue
from voice_logger.services.executor import ActionExecutor
from voice_logger.services.extraction import ActionExtractor
from voice_logger.services.intent import IntentClassifier
from voice_logger.services.logs import LogService
from voice_logger.services.nutrition import NutritionEstimator
from voice_logger.services.pipeline import VoicePipeline
from voice_logger.services.repositories import LogRepository, SupplementRepository
from voice_logger.services.retry import RetryPolicy
from voice_logger.services.time_resolver import TimeResolver
from voice_logger.services.transcription import (
    TranscriptionClient,
    TranscriptionService,
)

NOW = datetime(2025, 3, 14, 19, 30, tzinfo=UTC)


async def _no_sleep(_seconds: float) -> None:
    return None


def no_wait_retry(max_attempts: int = 3) -> RetryPolicy:
    """Retry policy that never actually sleeps."""
    return RetryPolicy(max_attempts=max_attempts, sleep=_no_sleep)


@dataclass
class FixedClock:
    """Clock frozen at a given instant."""

    instant: datetime = NOW

    def now(self) -> datetime:
        return self.instant


@dataclass
class FakeCompletionClient(CompletionClient):
    """Completion client scripted per schema name.

    Each scripted item is returned (or raised, for exceptions) once; the last
    item for a name repeats.
    """

    responses: dict[str, list[object]] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)
    delays: dict[str, float] = field(default_factory=dict)

    def script(self, name: str, *items: object) -> None:
        self.responses.setdefault(name, []).extend(items)

    def calls_for(self, name: str) -> list[str]:
        return [prompt for call_name, prompt in self.calls if call_name == name]

    async def complete(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        name: str,
        schema: dict[str, object],
        system: str,
        prompt: str,
    ) -> dict[str, object]:
        self.calls.append((name, prompt))
        if name in self.delays:
            await asyncio.sleep(self.delays[name])
        queue = self.responses.get(name)
        if not queue:
            raise AssertionError(f"unexpected completion call: {name}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item  # type: ignore[return-value]


@dataclass
class FakeTranscriptionClient(TranscriptionClient):
    """Transcription client returning a fixed transcript."""

    text: str = ""
    delay: float = 0.0
    error: Exception | None = None
    calls: list[str] = field(default_factory=list)

    async def transcribe(
        self, *, model: str, audio: bytes, filename: str, prompt: str | None
    ) -> dict[str, object]:
        self.calls.append(filename)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return {"text": self.text, "language": "en", "duration": 3.2}


@dataclass
class InMemoryLogRepository(LogRepository):
    """In-memory log repository for tests."""

    entries: dict[UUID, LogEntry] = field(default_factory=dict)
    failing_types: set[LogType] = field(default_factory=set)
    updates: list[tuple[UUID, dict[str, object]]] = field(default_factory=list)

    def append(self, entry: LogEntry) -> UUID:
        if entry.type in self.failing_types:
            raise RuntimeError(f"cannot store {entry.type.value} entries")
        self.entries[entry.id] = entry
        return entry.id

    def update(self, entry_id: UUID, fields: dict[str, object]) -> None:
        entry = self.entries.get(entry_id)
        if entry is None:
            raise LogEntryNotFound(f"log entry {entry_id} not found")
        changes = dict(fields)
        if "nutrition_status" in changes:
            changes["nutrition_status"] = NutritionStatus(changes["nutrition_status"])
        self.entries[entry_id] = replace(entry, **changes)
        self.updates.append((entry_id, fields))

    def get(self, entry_id: UUID) -> LogEntry | None:
        return self.entries.get(entry_id)

    def delete(self, entry_id: UUID) -> bool:
        return self.entries.pop(entry_id, None) is not None

    def of_type(self, log_type: LogType) -> list[LogEntry]:
        return [entry for entry in self.entries.values() if entry.type == log_type]


@dataclass
class InMemorySupplementRepository(SupplementRepository):
    """In-memory supplement repository for tests."""

    supplements: dict[UUID, dict[str, object]] = field(default_factory=dict)

    def add_supplement(
        self,
        name: str,
        dosage: str | None,
        frequency: str | None,
        times_per_day: int,
    ) -> UUID:
        supplement_id = uuid4()
        self.supplements[supplement_id] = {
            "name": name,
            "dosage": dosage,
            "frequency": frequency,
            "times_per_day": times_per_day,
        }
        return supplement_id


def completion_service(client: FakeCompletionClient) -> StructuredCompletionService:
    return StructuredCompletionService(
        client=client, model="test-model", retry=no_wait_retry()
    )


@dataclass
class PipelineHarness:
    """A pipeline wired to fakes, plus handles on the fakes."""

    pipeline: VoicePipeline
    completion_client: FakeCompletionClient
    transcription_client: FakeTranscriptionClient
    log_repository: InMemoryLogRepository
    supplement_repository: InMemorySupplementRepository
    enrichment: NutritionEnrichmentQueue


def build_harness(  # noqa: PLR0913
    *,
    transcript: str = "",
    completion_client: FakeCompletionClient | None = None,
    transcription_client: FakeTranscriptionClient | None = None,
    log_repository: InMemoryLogRepository | None = None,
    stage_timeout_seconds: float = 15.0,
    global_timeout_seconds: float = 30.0,
    completed_grace_seconds: float = 0.0,
) -> PipelineHarness:
    completion_client = completion_client or FakeCompletionClient()
    transcription_client = transcription_client or FakeTranscriptionClient(
        text=transcript
    )
    log_repository = log_repository or InMemoryLogRepository()
    supplement_repository = InMemorySupplementRepository()
    clock = FixedClock()
    completion = completion_service(completion_client)
    enrichment = NutritionEnrichmentQueue(
        estimator=NutritionEstimator(completion=completion, cache=InMemoryCache()),
        repository=log_repository,
    )
    pipeline = VoicePipeline(
        transcriber=TranscriptionService(
            client=transcription_client, model="whisper-1", retry=no_wait_retry()
        ),
        classifier=IntentClassifier(completion=completion),
        extractor=ActionExtractor(completion=completion, resolver=TimeResolver()),
        executor=ActionExecutor(
            repository=log_repository,
            supplements=supplement_repository,
            enrichment=enrichment,
            clock=clock,
        ),
        clock=clock,
        stage_timeout_seconds=stage_timeout_seconds,
        global_timeout_seconds=global_timeout_seconds,
        completed_grace_seconds=completed_grace_seconds,
    )
    return PipelineHarness(
        pipeline=pipeline,
        completion_client=completion_client,
        transcription_client=transcription_client,
        log_repository=log_repository,
        supplement_repository=supplement_repository,
        enrichment=enrichment,
    )


def raw_action(  # noqa: PLR0913
    action_type: str,
    span: str,
    *,
    confidence: float = 0.9,
    kind: str = "none",
    explicit_time: str | None = None,
    meal: str | None = None,
    offset_minutes: float | None = None,
    **details: object,
) -> dict[str, object]:
    """Raw action payload shaped like the voice_actions schema."""
    detail_fields = {
        "item": None,
        "amount": None,
        "unit": None,
        "meal_type": None,
        "meal_name": None,
        "meal_slot": None,
        "components": None,
        "severity": None,
        "symptoms": None,
        "vitamin_name": None,
        "dosage": None,
        "frequency": None,
        "times_per_day": None,
        "notes": None,
    }
    detail_fields.update(details)
    return {
        "action_type": action_type,
        "confidence": confidence,
        "span": span,
        "time_reference": {
            "kind": kind,
            "explicit_time": explicit_time,
            "meal": meal,
            "offset_minutes": offset_minutes,
        },
        "details": detail_fields,
    }


def component(name: str, **fields: object) -> dict[str, object]:
    return {
        "name": name,
        "quantity": fields.get("quantity"),
        "unit": fields.get("unit"),
        "preparation_method": fields.get("preparation_method"),
        "is_main_ingredient": fields.get("is_main_ingredient"),
    }


AUDIO = AudioClip(data=b"fake-m4a-bytes", filename="note.m4a")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="openai-key",
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        completed_grace_seconds=0.0,
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def completion_client() -> FakeCompletionClient:
    return FakeCompletionClient()


@pytest.fixture
def log_repository() -> InMemoryLogRepository:
    return InMemoryLogRepository()


@pytest.fixture
def harness(completion_client: FakeCompletionClient) -> PipelineHarness:
    return build_harness(completion_client=completion_client)


@pytest.fixture
def container(settings: Settings, harness: PipelineHarness) -> AppContainer:
    log_service = LogService(
        repository=harness.log_repository, enrichment=harness.enrichment
    )

    async def close_resources() -> None:
        await harness.enrichment.close()

    return AppContainer(
        settings=settings,
        pipeline=harness.pipeline,
        enrichment=harness.enrichment,
        log_service=log_service,
        close_resources=close_resources,
    )
