"""Fan-out of session events to connected clients."""

import logging
import threading
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from couple_swipe.domain.events import EventKind, SessionEvent
from couple_swipe.domain.sessions import CoupleSession
from couple_swipe.domain.swipes import Match

_logger = logging.getLogger(__name__)


class EventTransport(Protocol):
    """Delivery interface for session events."""

    async def publish(self, event: SessionEvent) -> None:
        """Deliver an event to subscribers of its channel."""


@dataclass
class EventBroadcaster:
    """Stamps session events and hands them to every transport.

    Callers publish only after the triggering write has returned. A failed
    transport is logged and skipped; clients recover through resync.
    """

    transports: list[EventTransport] = field(default_factory=list)
    _sequences: dict[UUID, int] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def current_sequence(self, channel: UUID) -> int:
        """Return the last sequence number issued on a channel."""
        with self._lock:
            return self._sequences.get(channel, 0)

    async def session_updated(self, session: CoupleSession) -> SessionEvent:
        """Publish the full session state.

        A closed session publishes nothing further, so its counter is released
        once the closing event is out.
        """
        event = await self._publish(
            session.id, EventKind.SESSION_UPDATED, session_payload(session)
        )
        if not session.is_open:
            self._release(session.id)
        return event

    async def match_created(self, match: Match) -> SessionEvent:
        """Publish a newly created match."""
        return await self._publish(
            match.session_id, EventKind.MATCH_CREATED, match_payload(match)
        )

    async def partner_swiped(
        self, session_id: UUID, user_id: str, item_id: str
    ) -> SessionEvent:
        """Publish that a participant swiped an item, without the decision."""
        return await self._publish(
            session_id,
            EventKind.PARTNER_SWIPED,
            {"item_id": item_id, "swiped_by": user_id},
        )

    async def _publish(
        self, channel: UUID, kind: EventKind, payload: dict[str, object]
    ) -> SessionEvent:
        event = SessionEvent(
            channel=channel,
            sequence=self._next_sequence(channel),
            kind=kind,
            payload=payload,
        )
        for transport in self.transports:
            try:
                await transport.publish(event)
            except Exception:
                _logger.exception(
                    "Failed to publish %s on %s via %s",
                    kind.value,
                    channel,
                    type(transport).__name__,
                )
        return event

    def _release(self, channel: UUID) -> None:
        with self._lock:
            self._sequences.pop(channel, None)

    def _next_sequence(self, channel: UUID) -> int:
        with self._lock:
            sequence = self._sequences.get(channel, 0) + 1
            self._sequences[channel] = sequence
            return sequence


def session_payload(session: CoupleSession) -> dict[str, object]:
    """Serialize a session for events and API responses."""
    return {
        "id": str(session.id),
        "code": session.code,
        "creator_id": session.creator_id,
        "partner_id": session.partner_id,
        "status": session.status.value,
        "created_at": session.created_at.isoformat(),
        "ended_at": session.ended_at.isoformat() if session.ended_at else None,
    }


def match_payload(match: Match) -> dict[str, object]:
    """Serialize a match for events and API responses."""
    return {
        "session_id": str(match.session_id),
        "item_id": match.item_id,
        "created_at": match.created_at.isoformat(),
    }
