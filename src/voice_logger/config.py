"""Application configuration."""

import os
from datetime import time

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    openai_api_key: str
    openai_model: str = "gpt-5"
    openai_fast_model: str = "gpt-5-mini"
    openai_transcription_model: str = "whisper-1"
    openai_reasoning_effort: str | None = "low"
    openai_store: bool = False
    supabase_url: str
    supabase_service_key: str
    timezone: str = "UTC"
    stage_timeout_seconds: float = 15.0
    global_timeout_seconds: float = 30.0
    completed_grace_seconds: float = 1.5
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    intent_min_no_confidence: float = 0.6
    meal_time_breakfast: str = "08:00"
    meal_time_lunch: str = "12:00"
    meal_time_dinner: str = "18:00"
    meal_time_snack: str = "15:00"
    debug: bool = False
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def meal_times(self) -> dict[str, time]:
        """Clock times used for meal-type keywords."""
        return parse_meal_times(
            {
                "breakfast": self.meal_time_breakfast,
                "lunch": self.meal_time_lunch,
                "dinner": self.meal_time_dinner,
                "snack": self.meal_time_snack,
            }
        )


def parse_meal_times(raw: dict[str, str]) -> dict[str, time]:
    """Parse HH:MM strings per meal, ignoring malformed values."""
    times: dict[str, time] = {}
    for meal, value in raw.items():
        cleaned = value.strip()
        if not cleaned:
            continue
        try:
            times[meal] = time.fromisoformat(cleaned)
        except ValueError:
            continue
    return times
