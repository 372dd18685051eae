"""Domain models for couple swiping sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class SessionStatus(StrEnum):
    """Lifecycle states of a couple session."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"


OPEN_STATUSES = frozenset({SessionStatus.PENDING, SessionStatus.ACTIVE})


@dataclass(frozen=True)
class CoupleSession:
    """Represents a persisted couple session."""

    id: UUID
    code: str
    creator_id: str
    partner_id: str | None
    status: SessionStatus
    created_at: datetime
    ended_at: datetime | None = None

    @property
    def participants(self) -> tuple[str, ...]:
        """Return the creator and, once joined, the partner."""
        if self.partner_id is None:
            return (self.creator_id,)
        return (self.creator_id, self.partner_id)

    @property
    def is_open(self) -> bool:
        """Return true while the session can still be joined or swiped."""
        return self.status in OPEN_STATUSES

    def is_participant(self, user_id: str) -> bool:
        """Return true when the user is the creator or the partner."""
        return user_id in self.participants

    def other_participant(self, user_id: str) -> str | None:
        """Return the participant that is not ``user_id``."""
        if user_id == self.creator_id:
            return self.partner_id
        if user_id == self.partner_id:
            return self.creator_id
        return None
