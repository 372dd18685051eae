"""Domain models for session events."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from uuid import UUID, uuid4

from couple_swipe.domain.sessions import CoupleSession
from couple_swipe.domain.swipes import Match


class EventKind(StrEnum):
    """Kinds of events published on a session channel."""

    SESSION_UPDATED = "session_updated"
    MATCH_CREATED = "match_created"
    PARTNER_SWIPED = "partner_swiped"


@dataclass(frozen=True)
class SessionEvent:
    """Event published on a session channel.

    ``sequence`` increases monotonically per channel; clients drop any
    event whose sequence or ``event_id`` they have already seen.
    """

    channel: UUID
    sequence: int
    kind: EventKind
    payload: dict[str, object]
    event_id: UUID = field(default_factory=uuid4)
    published_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def to_message(self) -> dict[str, object]:
        """Return a JSON-serializable representation."""
        return {
            "event_id": str(self.event_id),
            "channel": str(self.channel),
            "sequence": self.sequence,
            "kind": self.kind.value,
            "payload": self.payload,
            "published_at": self.published_at.isoformat(),
        }


@dataclass(frozen=True)
class SessionSnapshot:
    """Full session state handed to a client on (re)connect."""

    session: CoupleSession
    matches: list[Match]
    sequence: int
