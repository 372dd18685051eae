"""Supabase-backed couple session repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from couple_swipe.adapters.supabase_errors import is_unique_violation, store_errors
from couple_swipe.domain.sessions import OPEN_STATUSES, CoupleSession, SessionStatus
from couple_swipe.services.registry import SessionRepository

_TABLE = "couple_sessions"
_COLUMNS = "id, session_code, created_by, joined_by, status, created_at, ended_at"
_OPEN = [status.value for status in OPEN_STATUSES]


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for couple sessions."""

    client: Client

    def insert_session(
        self, code: str, creator_id: str, created_at: datetime
    ) -> CoupleSession | None:
        """Insert a pending session; None when the code is already in use."""
        try:
            with store_errors("insert_session"):
                response = (
                    self.client.table(_TABLE)
                    .insert(
                        {
                            "session_code": code,
                            "created_by": creator_id,
                            "status": SessionStatus.PENDING.value,
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
            raise RuntimeError("Failed to create couple session")
        return _to_session(response.data[0])

    def get_session(self, session_id: UUID) -> CoupleSession | None:
        """Return a session by id, if present."""
        with store_errors("get_session"):
            response = (
                self.client.table(_TABLE)
                .select(_COLUMNS)
                .eq("id", str(session_id))
                .is_("deleted_at", "null")
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return _to_session(response.data[0])

    def find_by_code(self, code: str) -> CoupleSession | None:
        """Return the most recent session issued with a code."""
        with store_errors("find_by_code"):
            response = (
                self.client.table(_TABLE)
                .select(_COLUMNS)
                .eq("session_code", code)
                .is_("deleted_at", "null")
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return _to_session(response.data[0])

    def claim_partner(
        self, code: str, partner_id: str, created_after: datetime
    ) -> CoupleSession | None:
        """Set the partner with one conditional update."""
        with store_errors("claim_partner"):
            response = (
                self.client.table(_TABLE)
                .update(
                    {
                        "joined_by": partner_id,
                        "status": SessionStatus.ACTIVE.value,
                    }
                )
                .eq("session_code", code)
                .in_("status", _OPEN)
                .is_("joined_by", "null")
                .is_("deleted_at", "null")
                .neq("created_by", partner_id)
                .gt("created_at", created_after.isoformat())
                .execute()
            )
        if not response.data:
            return None
        return _to_session(response.data[0])

    def complete_session(
        self, session_id: UUID, ended_at: datetime
    ) -> CoupleSession | None:
        """Move an open session to completed."""
        with store_errors("complete_session"):
            response = (
                self.client.table(_TABLE)
                .update(
                    {
                        "status": SessionStatus.COMPLETED.value,
                        "ended_at": ended_at.isoformat(),
                    }
                )
                .eq("id", str(session_id))
                .in_("status", _OPEN)
                .is_("deleted_at", "null")
                .execute()
            )
        if not response.data:
            return None
        return _to_session(response.data[0])

    def expire_pending(
        self, created_before: datetime, ended_at: datetime
    ) -> list[CoupleSession]:
        """Expire pending sessions created before the cutoff."""
        with store_errors("expire_pending"):
            response = (
                self.client.table(_TABLE)
                .update(
                    {
                        "status": SessionStatus.EXPIRED.value,
                        "ended_at": ended_at.isoformat(),
                    }
                )
                .eq("status", SessionStatus.PENDING.value)
                .lt("created_at", created_before.isoformat())
                .is_("deleted_at", "null")
                .execute()
            )
        return [_to_session(row) for row in response.data or []]

    def list_sessions_for_user(
        self, user_id: str, statuses: list[SessionStatus]
    ) -> list[CoupleSession]:
        """Return sessions the user created or joined."""
        rows: dict[str, dict] = {}
        for column in ("created_by", "joined_by"):
            with store_errors("list_sessions_for_user"):
                response = (
                    self.client.table(_TABLE)
                    .select(_COLUMNS)
                    .eq(column, user_id)
                    .in_("status", [status.value for status in statuses])
                    .is_("deleted_at", "null")
                    .execute()
                )
            for row in response.data or []:
                rows[row["id"]] = row
        sessions = [_to_session(row) for row in rows.values()]
        return sorted(sessions, key=lambda session: session.created_at, reverse=True)


def _to_session(row: dict) -> CoupleSession:
    ended_at = row.get("ended_at")
    return CoupleSession(
        id=UUID(row["id"]),
        code=row["session_code"],
        creator_id=row["created_by"],
        partner_id=row.get("joined_by"),
        status=SessionStatus(row["status"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        ended_at=datetime.fromisoformat(ended_at) if ended_at else None,
    )
