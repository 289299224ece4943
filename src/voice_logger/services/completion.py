"""Structured completions validated into pydantic models."""

import logging
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from voice_logger.domain.errors import SchemaValidationError
from voice_logger.services.retry import RetryPolicy

ModelT = TypeVar("ModelT", bound=BaseModel)

_logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
    """Interface for LLM completions constrained to a JSON schema."""

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
        """Return the structured output as a decoded JSON object."""


@dataclass
class StructuredCompletionService:
    """Runs a schema-constrained completion and validates the result."""

    client: CompletionClient
    model: str
    reasoning_effort: str | None = None
    store: bool = False
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    async def run(  # noqa: PLR0913
        self,
        *,
        name: str,
        schema: dict[str, object],
        system: str,
        prompt: str,
        response_model: type[ModelT],
    ) -> ModelT:
        """Call the model and validate its output into ``response_model``."""
        raw = await self.retry.call(
            lambda: self.client.complete(
                model=self.model,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                name=name,
                schema=schema,
                system=system,
                prompt=prompt,
            ),
            action=f"completion:{name}",
        )
        try:
            return response_model.model_validate(raw)
        except ValidationError as exc:
            _logger.warning("Completion %s failed validation: %s", name, exc)
            raise SchemaValidationError(
                f"{name} output did not match schema"
            ) from exc
