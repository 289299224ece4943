"""Turn extracted voice actions into persisted log entries."""

import logging
from dataclasses import dataclass
from uuid import UUID

from voice_logger.domain.actions import ActionType, VoiceAction
from voice_logger.domain.errors import UnsupportedAction
from voice_logger.domain.logs import LogEntry, LogType, NutritionStatus
from voice_logger.domain.sessions import ExecutionResult
from voice_logger.services.clock import Clock
from voice_logger.services.enrichment import NutritionEnrichmentQueue
from voice_logger.services.repositories import LogRepository, SupplementRepository

DEFAULT_WATER_AMOUNT = "8"
DEFAULT_WATER_UNIT = "oz"
DEFAULT_SEVERITY = 3

_SEVERITY_WORDS = {
    "very mild": 1,
    "slight": 1,
    "mild": 2,
    "moderate": 3,
    "medium": 3,
    "severe": 4,
    "bad": 4,
    "very severe": 5,
    "extreme": 5,
}

_LOG_TYPES = {
    ActionType.LOG_FOOD: LogType.FOOD,
    ActionType.LOG_WATER: LogType.WATER,
    ActionType.LOG_SYMPTOM: LogType.SYMPTOM,
    ActionType.LOG_VITAMIN: LogType.VITAMIN,
    ActionType.LOG_SCORE_EVENT: LogType.SCORE,
}

_logger = logging.getLogger(__name__)


@dataclass
class ActionExecutor:
    """Persists actions one by one; a failing action never stops the rest."""

    repository: LogRepository
    supplements: SupplementRepository
    enrichment: NutritionEnrichmentQueue
    clock: Clock

    async def execute(self, actions: list[VoiceAction]) -> ExecutionResult:
        result = ExecutionResult()
        for action in actions:
            try:
                record_id = self._execute_one(action)
            except Exception as exc:
                _logger.warning(
                    "Action %s failed: %s", action.action_type.value, exc
                )
                result.failed.append((action, exc))
                continue
            result.succeeded.append(action)
            result.entry_ids.append(record_id)
        return result

    def _execute_one(self, action: VoiceAction) -> UUID:
        if action.action_type == ActionType.ADD_VITAMIN:
            return self._add_supplement(action)
        if action.action_type not in _LOG_TYPES:
            raise UnsupportedAction(f"cannot log {action.action_type.value} action")

        entry = self.build_entry(action)
        entry_id = self.repository.append(entry)
        if entry.type == LogType.FOOD:
            self.enrichment.schedule(entry_id, action.food_description())
        _logger.info("Logged %s: %s", entry.type.value, action.summary())
        return entry_id

    def build_entry(self, action: VoiceAction) -> LogEntry:
        """Shell entry for an action; food nutrition is filled in later."""
        details = action.details
        now = self.clock.now()
        base = {
            "date": details.timestamp or now,
            "created_at": now,
            "type": _LOG_TYPES[action.action_type],
            "notes": details.notes,
            "time_source": details.time_source.value if details.time_source else None,
        }
        if action.action_type == ActionType.LOG_FOOD:
            return LogEntry(
                **base,
                item=details.item,
                amount=details.amount,
                unit=details.unit,
                meal_type=details.meal_slot,
                meal_name=details.meal_name,
                components=[
                    component.model_dump(mode="json")
                    for component in details.components or []
                ],
                nutrition_status=NutritionStatus.PENDING,
            )
        if action.action_type == ActionType.LOG_WATER:
            return LogEntry(
                **base,
                item="water",
                amount=details.amount or DEFAULT_WATER_AMOUNT,
                unit=details.unit or DEFAULT_WATER_UNIT,
            )
        if action.action_type == ActionType.LOG_SYMPTOM:
            symptoms = list(details.symptoms or [])
            if not symptoms and details.item:
                symptoms = [details.item]
            return LogEntry(
                **base,
                symptoms=symptoms,
                severity=severity_score(details.severity),
            )
        if action.action_type == ActionType.LOG_VITAMIN:
            return LogEntry(
                **base,
                vitamin_name=details.vitamin_name or details.item,
                amount=details.dosage or details.amount,
                unit=details.unit,
            )
        return LogEntry(**base, item=details.item, amount=details.amount)

    def _add_supplement(self, action: VoiceAction) -> UUID:
        details = action.details
        name = details.vitamin_name or details.item
        if not name:
            raise UnsupportedAction("add_vitamin without a supplement name")
        supplement_id = self.supplements.add_supplement(
            name=name,
            dosage=details.dosage,
            frequency=details.frequency or "daily",
            times_per_day=details.times_per_day or 1,
        )
        _logger.info("Added supplement %s", name)
        return supplement_id


def severity_score(severity: str | None) -> int:
    """Map a spoken severity onto the 1-5 scale."""
    if severity is None:
        return DEFAULT_SEVERITY
    cleaned = " ".join(severity.lower().split())
    if cleaned.isdigit():
        return min(5, max(1, int(cleaned)))
    if cleaned in _SEVERITY_WORDS:
        return _SEVERITY_WORDS[cleaned]
    for word, score in sorted(_SEVERITY_WORDS.items(), key=lambda item: -len(item[0])):
        if word in cleaned:
            return score
    return DEFAULT_SEVERITY
