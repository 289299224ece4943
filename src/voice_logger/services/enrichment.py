"""Background nutrition enrichment for food log entries."""

import asyncio
import logging
from dataclasses import dataclass, field
from uuid import UUID

from voice_logger.domain.errors import EstimationUnavailable, LogEntryNotFound
from voice_logger.domain.logs import NutritionStatus
from voice_logger.services.nutrition import NutritionEstimator
from voice_logger.services.repositories import LogRepository

_logger = logging.getLogger(__name__)


@dataclass
class NutritionEnrichmentQueue:
    """Runs one estimation task per food entry, outside the voice session.

    The entry must already be persisted when ``schedule`` is called. A second
    schedule for the same id replaces the first task, so updates for one entry
    never interleave. An entry whose nutrition cannot be estimated is marked
    ``unavailable`` with its nutrition fields left empty; other failures are
    only logged.
    """

    estimator: NutritionEstimator
    repository: LogRepository
    _tasks: dict[UUID, asyncio.Task[None]] = field(default_factory=dict, init=False)

    def schedule(self, entry_id: UUID, description: str) -> asyncio.Task[None]:
        previous = self._tasks.pop(entry_id, None)
        if previous is not None and not previous.done():
            previous.cancel()
        task = asyncio.create_task(
            self._enrich(entry_id, description), name=f"enrich:{entry_id}"
        )
        self._tasks[entry_id] = task
        task.add_done_callback(lambda done: self._forget(entry_id, done))
        return task

    def cancel(self, entry_id: UUID) -> bool:
        """Cancel enrichment for an entry; return True if one was in flight."""
        task = self._tasks.pop(entry_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def pending(self) -> list[UUID]:
        return [entry_id for entry_id, task in self._tasks.items() if not task.done()]

    async def drain(self) -> None:
        """Wait for every in-flight enrichment to finish."""
        while True:
            running = [task for task in self._tasks.values() if not task.done()]
            if not running:
                return
            await asyncio.gather(*running, return_exceptions=True)

    async def close(self) -> None:
        """Cancel every in-flight enrichment."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _enrich(self, entry_id: UUID, description: str) -> None:
        try:
            estimate = await self.estimator.estimate(description)
        except EstimationUnavailable as exc:
            _logger.warning(
                "Nutrition unavailable for entry %s (%s): %s",
                entry_id,
                description,
                exc,
            )
            self._store(
                entry_id, {"nutrition_status": NutritionStatus.UNAVAILABLE.value}
            )
            return
        except Exception:
            _logger.exception("Nutrition estimation crashed for entry %s", entry_id)
            return

        fields = {
            **estimate.as_log_fields(),
            "nutrition_status": NutritionStatus.READY.value,
        }
        if self._store(entry_id, fields):
            _logger.info(
                "Enriched entry %s: %s kcal (%s)",
                entry_id,
                estimate.calories,
                estimate.confidence.value,
            )

    def _store(self, entry_id: UUID, fields: dict[str, object]) -> bool:
        try:
            self.repository.update(entry_id, fields)
        except LogEntryNotFound:
            _logger.info("Entry %s was deleted before enrichment finished", entry_id)
            return False
        except Exception:
            _logger.exception("Failed to store nutrition for entry %s", entry_id)
            return False
        return True

    def _forget(self, entry_id: UUID, task: asyncio.Task[None]) -> None:
        if self._tasks.get(entry_id) is task:
            del self._tasks[entry_id]
