"""Binary intent classification: does a transcript contain a loggable event?"""

import logging
import re
from dataclasses import dataclass

from pydantic import BaseModel, Field

from voice_logger.services.completion import StructuredCompletionService

_ACTION_KEYWORDS = re.compile(
    r"\b(?:ate|eaten|eating|had|drank|drink|drinking|water|breakfast|lunch|"
    r"dinner|supper|snack|vitamins?|supplements?|pills?|took|nause(?:a|ous)|"
    r"threw up|vomit(?:ed|ing)?|headache|cramps?|bloated|dizzy|symptoms?)\b"
)

INTENT_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "has_action": {"type": "boolean"},
        "confidence": {"type": "number", "minimum": 0.0, "maximum": 1.0},
        "reason": {"type": "string"},
    },
    "required": ["has_action", "confidence", "reason"],
    "additionalProperties": False,
}

INTENT_SYSTEM = (
    "You decide whether a short spoken note describes something the user wants "
    "to log in a health journal: food or drink consumed, water intake, "
    "symptoms, vitamins taken, or supplements to add. Questions, greetings and "
    "unrelated chatter are not loggable. When unsure, answer yes."
)

_logger = logging.getLogger(__name__)


class IntentClassification(BaseModel):
    """Whether a transcript should go on to action extraction."""

    has_action: bool
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    reason: str = ""


@dataclass
class IntentClassifier:
    """Cheap gate in front of action extraction, biased toward "yes"."""

    completion: StructuredCompletionService
    min_no_confidence: float = 0.6

    async def classify(self, transcript: str) -> IntentClassification:
        text = transcript.strip()
        if not text:
            return IntentClassification(
                has_action=False, confidence=1.0, reason="empty transcript"
            )
        match = _ACTION_KEYWORDS.search(text.lower())
        if match:
            return IntentClassification(
                has_action=True,
                confidence=1.0,
                reason=f"keyword: {match.group(0)}",
            )

        result = await self.completion.run(
            name="intent_classification",
            schema=INTENT_SCHEMA,
            system=INTENT_SYSTEM,
            prompt=f"Transcript: {text}",
            response_model=IntentClassification,
        )
        if not result.has_action and result.confidence < self.min_no_confidence:
            _logger.info(
                "Low-confidence no (%.2f) treated as action: %s",
                result.confidence,
                result.reason,
            )
            return result.model_copy(update={"has_action": True})
        return result
