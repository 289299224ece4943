"""Supabase repository for the supplement regimen."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from voice_logger.services.repositories import SupplementRepository


@dataclass
class SupabaseSupplementRepository(SupplementRepository):
    client: Client

    def add_supplement(
        self,
        name: str,
        dosage: str | None,
        frequency: str | None,
        times_per_day: int,
    ) -> UUID:
        """Create a supplement row and return its id."""
        response = (
            self.client.table("supplements")
            .insert(
                {
                    "name": name,
                    "dosage": dosage,
                    "frequency": frequency,
                    "times_per_day": times_per_day,
                    "is_active": True,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create supplement")
        return UUID(response.data[0]["id"])
