"""Supabase repository for health log entries."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from voice_logger.domain.errors import LogEntryNotFound
from voice_logger.domain.logs import LogEntry, LogSource, LogType, NutritionStatus
from voice_logger.services.repositories import LogRepository

_TABLE = "log_entries"


@dataclass
class SupabaseLogRepository(LogRepository):
    """Supabase implementation for log entries."""

    client: Client

    def append(self, entry: LogEntry) -> UUID:
        """Insert an entry and return its id."""
        response = self.client.table(_TABLE).insert(entry.to_record()).execute()
        if not response.data:
            raise RuntimeError("Failed to create log entry")
        return UUID(response.data[0]["id"])

    def update(self, entry_id: UUID, fields: dict[str, object]) -> None:
        response = (
            self.client.table(_TABLE).update(fields).eq("id", str(entry_id)).execute()
        )
        if not response.data:
            raise LogEntryNotFound(f"log entry {entry_id} not found")

    def get(self, entry_id: UUID) -> LogEntry | None:
        response = (
            self.client.table(_TABLE)
            .select("*")
            .eq("id", str(entry_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_entry(response.data[0])

    def delete(self, entry_id: UUID) -> bool:
        response = self.client.table(_TABLE).delete().eq("id", str(entry_id)).execute()
        return bool(response.data)


def _parse_entry(row: dict[str, object]) -> LogEntry:
    return LogEntry(
        id=UUID(str(row["id"])),
        date=datetime.fromisoformat(str(row["date"])),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        type=LogType(row["type"]),
        source=LogSource(row.get("source") or LogSource.VOICE.value),
        item=row.get("item"),
        amount=row.get("amount"),
        unit=row.get("unit"),
        meal_type=row.get("meal_type"),
        meal_name=row.get("meal_name"),
        components=list(row.get("components") or []),
        symptoms=list(row.get("symptoms") or []),
        severity=_optional_int(row.get("severity")),
        vitamin_name=row.get("vitamin_name"),
        notes=row.get("notes"),
        time_source=row.get("time_source"),
        calories=_optional_int(row.get("calories")),
        protein_g=_optional_int(row.get("protein_g")),
        carbs_g=_optional_int(row.get("carbs_g")),
        fat_g=_optional_int(row.get("fat_g")),
        nutrition_confidence=row.get("nutrition_confidence"),
        nutrition_assumptions=list(row.get("nutrition_assumptions") or []),
        nutrition_status=NutritionStatus(
            row.get("nutrition_status") or NutritionStatus.NOT_APPLICABLE.value
        ),
    )


def _optional_int(value: object) -> int | None:
    if value is None:
        return None
    return int(value)
