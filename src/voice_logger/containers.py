"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from openai import AsyncOpenAI
from supabase import create_client

from voice_logger.adapters.openai_completion_client import OpenAICompletionClient
from voice_logger.adapters.openai_transcription_client import (
    OpenAITranscriptionClient,
)
from voice_logger.adapters.supabase_log_repository import SupabaseLogRepository
from voice_logger.adapters.supabase_supplement_repository import (
    SupabaseSupplementRepository,
)
from voice_logger.config import Settings
from voice_logger.services.cache import InMemoryCache
from voice_logger.services.clock import SystemClock
from voice_logger.services.completion import StructuredCompletionService
from voice_logger.services.enrichment import NutritionEnrichmentQueue
from voice_logger.services.executor import ActionExecutor
from voice_logger.services.extraction import ActionExtractor
from voice_logger.services.intent import IntentClassifier
from voice_logger.services.logs import LogService
from voice_logger.services.nutrition import NutritionEstimator
from voice_logger.services.pipeline import VoicePipeline
from voice_logger.services.retry import RetryPolicy
from voice_logger.services.time_resolver import DEFAULT_MEAL_TIMES, TimeResolver
from voice_logger.services.transcription import TranscriptionService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    pipeline: VoicePipeline
    enrichment: NutritionEnrichmentQueue
    log_service: LogService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    log_repository = SupabaseLogRepository(supabase_client)
    supplement_repository = SupabaseSupplementRepository(supabase_client)

    # Retries are handled by RetryPolicy, not the SDK.
    openai_client = AsyncOpenAI(
        api_key=resolved_settings.openai_api_key, max_retries=0
    )
    completion_client = OpenAICompletionClient(openai_client)
    transcription_client = OpenAITranscriptionClient(openai_client)
    retry = RetryPolicy(
        max_attempts=resolved_settings.retry_max_attempts,
        base_delay_seconds=resolved_settings.retry_base_delay_seconds,
    )
    completion = StructuredCompletionService(
        client=completion_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
        retry=retry,
    )
    fast_completion = StructuredCompletionService(
        client=completion_client,
        model=resolved_settings.openai_fast_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
        retry=retry,
    )

    clock = SystemClock.for_timezone(resolved_settings.timezone)
    resolver = TimeResolver(
        meal_times={**DEFAULT_MEAL_TIMES, **resolved_settings.meal_times()},
        max_past=timedelta(hours=24),
        max_future=timedelta(hours=1),
    )
    estimator = NutritionEstimator(
        completion=fast_completion,
        cache=InMemoryCache(),
        debug=resolved_settings.debug,
    )
    enrichment = NutritionEnrichmentQueue(
        estimator=estimator, repository=log_repository
    )
    pipeline = VoicePipeline(
        transcriber=TranscriptionService(
            client=transcription_client,
            model=resolved_settings.openai_transcription_model,
            retry=retry,
        ),
        classifier=IntentClassifier(
            completion=fast_completion,
            min_no_confidence=resolved_settings.intent_min_no_confidence,
        ),
        extractor=ActionExtractor(completion=completion, resolver=resolver),
        executor=ActionExecutor(
            repository=log_repository,
            supplements=supplement_repository,
            enrichment=enrichment,
            clock=clock,
        ),
        clock=clock,
        stage_timeout_seconds=resolved_settings.stage_timeout_seconds,
        global_timeout_seconds=resolved_settings.global_timeout_seconds,
        completed_grace_seconds=resolved_settings.completed_grace_seconds,
    )
    log_service = LogService(repository=log_repository, enrichment=enrichment)

    async def close_resources() -> None:
        pipeline.cancel()
        await enrichment.close()
        await completion_client.close()

    return AppContainer(
        settings=resolved_settings,
        pipeline=pipeline,
        enrichment=enrichment,
        log_service=log_service,
        close_resources=close_resources,
    )
