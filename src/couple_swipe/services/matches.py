"""Match detection for mutual likes."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol, TypeVar
from uuid import UUID

from couple_swipe.domain.errors import SessionNotFound
from couple_swipe.domain.swipes import Match
from couple_swipe.services.broadcaster import EventBroadcaster
from couple_swipe.services.registry import SessionRepository
from couple_swipe.services.retry import CountedCall, call_with_retry
from couple_swipe.services.swipes import SwipeRepository

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class MatchRepository(Protocol):
    """Persistence interface for matches."""

    def insert_match_if_absent(
        self, session_id: UUID, item_id: str, created_at: datetime
    ) -> Match | None:
        """Insert a match; return None if one already exists for the item."""

    def list_matches(self, session_id: UUID) -> list[Match]:
        """Return all matches of a session in creation order."""


@dataclass
class MatchDetector:
    """Creates exactly one match per mutually liked item."""

    repository: MatchRepository
    session_repository: SessionRepository
    swipe_repository: SwipeRepository
    broadcaster: EventBroadcaster
    retry_attempts: int = 2
    retry_delay_seconds: float = 0.2

    async def check_and_create_match(
        self, session_id: UUID, item_id: str, newly_liked_by: str
    ) -> Match | None:
        """Create the match if the other participant already liked the item.

        Both participants' swipe paths may run this concurrently; the store's
        unique constraint lets exactly one insert win and only the winner
        publishes ``MatchCreated``.
        """
        session = await self._store(
            lambda: self.session_repository.get_session(session_id),
            action="get_session",
        )
        if session is None:
            raise SessionNotFound(f"session {session_id} does not exist")
        other = session.other_participant(newly_liked_by)
        if other is None:
            return None

        decision = await self._store(
            lambda: self.swipe_repository.get_decision(session_id, other, item_id),
            action="get_decision",
        )
        if decision is None or not decision.liked:
            return None

        created_at = datetime.now(tz=UTC)
        insert = CountedCall(
            lambda: self.repository.insert_match_if_absent(
                session_id, item_id, created_at
            )
        )
        match = await self._store(insert, action="insert_match")
        if match is None and insert.retried:
            match = await self._find_own_match(session_id, item_id, created_at)
        if match is None:
            _logger.debug("Match race lost for %s in session %s", item_id, session_id)
            return None

        _logger.info("Match on %s in session %s", item_id, session_id)
        await self.broadcaster.match_created(match)
        return match

    async def list_matches(self, session_id: UUID) -> list[Match]:
        """Return the full match set of a session."""
        return await self._store(
            lambda: self.repository.list_matches(session_id), action="list_matches"
        )

    async def _find_own_match(
        self, session_id: UUID, item_id: str, created_at: datetime
    ) -> Match | None:
        """Return the match if an earlier, failed attempt of this call wrote it."""
        matches = await self.list_matches(session_id)
        for match in matches:
            if match.item_id == item_id and match.created_at == created_at:
                _logger.info(
                    "Match on %s committed before a failed response", item_id
                )
                return match
        return None

    async def _store(self, func: Callable[[], T], *, action: str) -> T:
        return await call_with_retry(
            func,
            action=action,
            attempts=self.retry_attempts,
            delay_seconds=self.retry_delay_seconds,
        )
