"""Log entry management outside the voice session."""

import logging
from dataclasses import dataclass
from uuid import UUID

from voice_logger.domain.errors import LogEntryNotFound
from voice_logger.domain.logs import LogEntry
from voice_logger.services.enrichment import NutritionEnrichmentQueue
from voice_logger.services.repositories import LogRepository

_logger = logging.getLogger(__name__)


@dataclass
class LogService:
    repository: LogRepository
    enrichment: NutritionEnrichmentQueue

    def get(self, entry_id: UUID) -> LogEntry:
        entry = self.repository.get(entry_id)
        if entry is None:
            raise LogEntryNotFound(f"log entry {entry_id} not found")
        return entry

    def delete(self, entry_id: UUID) -> None:
        """Delete an entry, cancelling any nutrition enrichment still running."""
        if self.enrichment.cancel(entry_id):
            _logger.info("Cancelled enrichment for deleted entry %s", entry_id)
        if not self.repository.delete(entry_id):
            raise LogEntryNotFound(f"log entry {entry_id} not found")
