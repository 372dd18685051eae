"""Supabase-backed swipe decision repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from couple_swipe.adapters.supabase_errors import is_unique_violation, store_errors
from couple_swipe.domain.swipes import SwipeDecision
from couple_swipe.services.swipes import SwipeRepository

_TABLE = "couple_swipes"
_COLUMNS = "session_id, user_id, food_item_id, decision, created_at"


@dataclass
class SupabaseSwipeRepository(SwipeRepository):
    """Supabase implementation for swipe decisions."""

    client: Client

    def insert_decision_if_absent(self, decision: SwipeDecision) -> bool:
        """Insert a decision guarded by the (session, user, item) unique key."""
        try:
            with store_errors("insert_decision"):
                self.client.table(_TABLE).insert(
                    {
                        "session_id": str(decision.session_id),
                        "user_id": decision.user_id,
                        "food_item_id": decision.item_id,
                        "decision": decision.liked,
                        "created_at": decision.recorded_at.isoformat(),
                    }
                ).execute()
        except APIError as exc:
            if is_unique_violation(exc):
                return False
            raise
        return True

    def get_decision(
        self, session_id: UUID, user_id: str, item_id: str
    ) -> SwipeDecision | None:
        """Return a participant's decision on an item, if present."""
        with store_errors("get_decision"):
            response = (
                self.client.table(_TABLE)
                .select(_COLUMNS)
                .eq("session_id", str(session_id))
                .eq("user_id", user_id)
                .eq("food_item_id", item_id)
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return _to_decision(response.data[0])

    def list_decisions(self, session_id: UUID, user_id: str) -> list[SwipeDecision]:
        """Return a participant's decisions oldest first."""
        with store_errors("list_decisions"):
            response = (
                self.client.table(_TABLE)
                .select(_COLUMNS)
                .eq("session_id", str(session_id))
                .eq("user_id", user_id)
                .order("created_at")
                .execute()
            )
        return [_to_decision(row) for row in response.data or []]


def _to_decision(row: dict) -> SwipeDecision:
    return SwipeDecision(
        session_id=UUID(row["session_id"]),
        user_id=row["user_id"],
        item_id=row["food_item_id"],
        liked=bool(row["decision"]),
        recorded_at=datetime.fromisoformat(row["created_at"]),
    )
