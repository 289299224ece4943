"""Persistence interfaces for log entries and supplements."""

from typing import Protocol
from uuid import UUID

from voice_logger.domain.logs import LogEntry


class LogRepository(Protocol):
    """Persistence interface for health log entries."""

    def append(self, entry: LogEntry) -> UUID:
        """Persist a new entry and return its id."""

    def update(self, entry_id: UUID, fields: dict[str, object]) -> None:
        """Apply field changes; raise LogEntryNotFound for an unknown id."""

    def get(self, entry_id: UUID) -> LogEntry | None:
        """Return an entry by id."""

    def delete(self, entry_id: UUID) -> bool:
        """Delete an entry; return False when it did not exist."""


class SupplementRepository(Protocol):
    """Persistence interface for the user's supplement regimen."""

    def add_supplement(
        self,
        name: str,
        dosage: str | None,
        frequency: str | None,
        times_per_day: int,
    ) -> UUID:
        """Add a supplement and return its id."""
