"""Supabase-backed match repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from couple_swipe.adapters.supabase_errors import is_unique_violation, store_errors
from couple_swipe.domain.swipes import Match
from couple_swipe.services.matches import MatchRepository

_TABLE = "couple_matches"


@dataclass
class SupabaseMatchRepository(MatchRepository):
    """Supabase implementation for matches."""

    client: Client

    def insert_match_if_absent(
        self, session_id: UUID, item_id: str, created_at: datetime
    ) -> Match | None:
        """Insert a match guarded by the (session, item) unique key."""
        try:
            with store_errors("insert_match"):
                response = (
                    self.client.table(_TABLE)
                    .insert(
                        {
                            "session_id": str(session_id),
                            "food_item_id": item_id,
                            "created_at": created_at.isoformat(),
                        }
                    )
                    .execute()
                )
        except APIError as exc:
            if is_unique_violation(exc):
                return None
            raise
        if not response.data:
            raise RuntimeError("Failed to create couple match")
        return _to_match(response.data[0])

    def list_matches(self, session_id: UUID) -> list[Match]:
        """Return all matches of a session oldest first."""
        with store_errors("list_matches"):
            response = (
                self.client.table(_TABLE)
                .select("session_id, food_item_id, created_at")
                .eq("session_id", str(session_id))
                .order("created_at")
                .execute()
            )
        return [_to_match(row) for row in response.data or []]


def _to_match(row: dict) -> Match:
    return Match(
        session_id=UUID(row["session_id"]),
        item_id=row["food_item_id"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )
