"""Recording of per-item swipe decisions."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol, TypeVar
from uuid import UUID

from couple_swipe.domain.errors import (
    NotAParticipant,
    SessionNotActive,
    SessionNotFound,
)
from couple_swipe.domain.sessions import SessionStatus
from couple_swipe.domain.swipes import Match, SwipeDecision, SwipeResult
from couple_swipe.services.broadcaster import EventBroadcaster
from couple_swipe.services.registry import SessionRepository
from couple_swipe.services.retry import CountedCall, call_with_retry

_logger = logging.getLogger(__name__)

T = TypeVar("T")

MatchCheck = Callable[[UUID, str, str], Awaitable[Match | None]]


class SwipeRepository(Protocol):
    """Persistence interface for swipe decisions."""

    def insert_decision_if_absent(self, decision: SwipeDecision) -> bool:
        """Insert a decision; return False if one exists for the same key."""

    def get_decision(
        self, session_id: UUID, user_id: str, item_id: str
    ) -> SwipeDecision | None:
        """Return a participant's decision on an item, if recorded."""

    def list_decisions(self, session_id: UUID, user_id: str) -> list[SwipeDecision]:
        """Return a participant's decisions in recording order."""


@dataclass
class SwipeRecorder:
    """Records each participant's decision on each item exactly once."""

    repository: SwipeRepository
    session_repository: SessionRepository
    broadcaster: EventBroadcaster
    match_check: MatchCheck
    retry_attempts: int = 2
    retry_delay_seconds: float = 0.2

    async def record_swipe(
        self, session_id: UUID, user_id: str, item_id: str, liked: bool
    ) -> SwipeResult:
        """Record a like or dislike; repeated calls are no-ops."""
        session = await self._store(
            lambda: self.session_repository.get_session(session_id),
            action="get_session",
        )
        if session is None:
            raise SessionNotFound(f"session {session_id} does not exist")
        if session.status != SessionStatus.ACTIVE:
            raise SessionNotActive(f"session {session_id} is {session.status}")
        if not session.is_participant(user_id):
            raise NotAParticipant(f"{user_id} is not in session {session_id}")

        decision = SwipeDecision(
            session_id=session_id,
            user_id=user_id,
            item_id=item_id,
            liked=liked,
            recorded_at=datetime.now(tz=UTC),
        )
        insert = CountedCall(
            lambda: self.repository.insert_decision_if_absent(decision)
        )
        is_new = await self._store(insert, action="insert_decision")
        if not is_new and insert.retried:
            is_new = await self._is_own_decision(decision)
        if not is_new:
            _logger.debug(
                "Duplicate swipe ignored: %s on %s in session %s",
                user_id,
                item_id,
                session_id,
            )
            return SwipeResult(is_new=False)

        await self.broadcaster.partner_swiped(session_id, user_id, item_id)
        match = None
        if liked:
            match = await self.match_check(session_id, item_id, user_id)
        return SwipeResult(is_new=True, match=match)

    async def list_own_swipes(
        self, session_id: UUID, user_id: str
    ) -> list[SwipeDecision]:
        """Return the caller's own decisions, never the partner's."""
        session = await self._store(
            lambda: self.session_repository.get_session(session_id),
            action="get_session",
        )
        if session is None:
            raise SessionNotFound(f"session {session_id} does not exist")
        if not session.is_participant(user_id):
            raise NotAParticipant(f"{user_id} is not in session {session_id}")
        return await self._store(
            lambda: self.repository.list_decisions(session_id, user_id),
            action="list_decisions",
        )

    async def _is_own_decision(self, decision: SwipeDecision) -> bool:
        """Return true when the stored decision is the one written by this call."""
        stored = await self._store(
            lambda: self.repository.get_decision(
                decision.session_id, decision.user_id, decision.item_id
            ),
            action="get_decision",
        )
        if stored != decision:
            return False
        _logger.info(
            "Swipe by %s on %s committed before a failed response",
            decision.user_id,
            decision.item_id,
        )
        return True

    async def _store(self, func: Callable[[], T], *, action: str) -> T:
        return await call_with_retry(
            func,
            action=action,
            attempts=self.retry_attempts,
            delay_seconds=self.retry_delay_seconds,
        )
