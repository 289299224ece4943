"""Error taxonomy for the voice logging pipeline."""

from enum import Enum


class ErrorCategory(str, Enum):
    """User-facing failure category, used to pick a recovery action."""

    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    VALIDATION = "validation"
    EXECUTION = "execution"
    CONFLICT = "conflict"
    CANCELLED = "cancelled"


class VoiceLoggerError(Exception):
    """Base error for the pipeline."""

    category: ErrorCategory = ErrorCategory.EXECUTION


class TransportError(VoiceLoggerError):
    """External service unreachable, rate-limited or failing."""

    category = ErrorCategory.TRANSPORT

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SchemaValidationError(VoiceLoggerError):
    """Completion output did not match the expected structured shape."""

    category = ErrorCategory.VALIDATION


class StageTimeoutError(VoiceLoggerError):
    """A pipeline stage or the whole session ran out of time."""

    category = ErrorCategory.TIMEOUT

    def __init__(self, stage: str, seconds: float) -> None:
        super().__init__(f"{stage} timed out after {seconds:g}s")
        self.stage = stage
        self.seconds = seconds


class _StageFailure(VoiceLoggerError):
    """Stage failure that inherits the category of its cause."""

    stage = "stage"

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"{self.stage} failed: {cause}")
        self.cause = cause
        self.category = getattr(cause, "category", ErrorCategory.TRANSPORT)


class TranscriptionFailed(_StageFailure):
    """Transcription stage failed."""

    stage = "transcription"


class ClassificationFailed(_StageFailure):
    """Intent classification stage failed."""

    stage = "classification"


class ExtractionFailed(_StageFailure):
    """Action extraction stage failed."""

    stage = "extraction"


class EstimationUnavailable(VoiceLoggerError):
    """Nutrition could not be estimated; the entry stays pending."""

    category = ErrorCategory.TRANSPORT


class UnsupportedAction(VoiceLoggerError):
    """Action type that can't be turned into a log entry."""

    category = ErrorCategory.VALIDATION


class ExecutionFailed(VoiceLoggerError):
    """Every action in a batch failed to persist."""

    category = ErrorCategory.EXECUTION


class SessionActiveError(VoiceLoggerError):
    """A new session was requested while another one is active."""

    category = ErrorCategory.CONFLICT


class LogEntryNotFound(VoiceLoggerError):
    """Log entry id is unknown to the store."""

    category = ErrorCategory.EXECUTION
