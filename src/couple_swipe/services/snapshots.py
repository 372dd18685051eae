"""Resync snapshots for reconnecting clients."""

from dataclasses import dataclass
from uuid import UUID

from couple_swipe.domain.events import SessionSnapshot
from couple_swipe.services.broadcaster import EventBroadcaster
from couple_swipe.services.matches import MatchDetector
from couple_swipe.services.registry import SessionRegistry


@dataclass
class SessionSnapshotService:
    """Builds the full state a client needs after (re)connecting."""

    registry: SessionRegistry
    match_detector: MatchDetector
    broadcaster: EventBroadcaster

    async def snapshot(self, session_id: UUID, user_id: str) -> SessionSnapshot:
        """Return session state, all matches and the channel sequence.

        The sequence is read first, so any event with a higher sequence may
        already be reflected in the snapshot; clients apply such events
        idempotently.
        """
        sequence = self.broadcaster.current_sequence(session_id)
        session = await self.registry.get_session(session_id, user_id)
        matches = await self.match_detector.list_matches(session_id)
        return SessionSnapshot(session=session, matches=matches, sequence=sequence)
