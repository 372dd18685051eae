"""Session registry: creation, joining and termination of couple sessions."""

import logging
import re
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from datetime import UTC, datetime, timedelta
from typing import Protocol, TypeVar
from uuid import UUID

from couple_swipe.domain.errors import (
    CodeSpaceExhausted,
    InvalidSessionCode,
    NotAParticipant,
    SelfJoinRejected,
    SessionAlreadyJoined,
    SessionNotFound,
)
from couple_swipe.domain.sessions import CoupleSession, SessionStatus
from couple_swipe.services.broadcaster import EventBroadcaster
from couple_swipe.services.retry import CountedCall, call_with_retry

_CODE_PATTERN = re.compile(r"[0-9]{6}")

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionRepository(Protocol):
    """Persistence interface for couple sessions."""

    def insert_session(
        self, code: str, creator_id: str, created_at: datetime
    ) -> CoupleSession | None:
        """Insert a pending session, or return None if the code is taken."""

    def get_session(self, session_id: UUID) -> CoupleSession | None:
        """Return a session by id, if present."""

    def find_by_code(self, code: str) -> CoupleSession | None:
        """Return the most recent session with this code, if any."""

    def claim_partner(
        self, code: str, partner_id: str, created_after: datetime
    ) -> CoupleSession | None:
        """Atomically set the partner of an open, unclaimed session.

        Only matches a session with this code that is pending or active, has
        no partner, was not created by ``partner_id`` and was created after
        ``created_after``. Returns the updated row, or None if nothing matched.
        """

    def complete_session(
        self, session_id: UUID, ended_at: datetime
    ) -> CoupleSession | None:
        """Atomically move an open session to completed; None if not open."""

    def expire_pending(
        self, created_before: datetime, ended_at: datetime
    ) -> list[CoupleSession]:
        """Atomically expire pending sessions created before the cutoff."""

    def list_sessions_for_user(
        self, user_id: str, statuses: list[SessionStatus]
    ) -> list[CoupleSession]:
        """Return sessions the user takes part in with one of the statuses."""


def generate_session_code() -> str:
    """Return a random six-digit code, leading zeros included."""
    return f"{secrets.randbelow(1_000_000):06d}"


def is_valid_session_code(code: str) -> bool:
    """Return true when the code is exactly six ASCII digits."""
    return bool(_CODE_PATTERN.fullmatch(code))


@dataclass
class SessionRegistry:
    """Owns the session lifecycle state machine.

    ``pending --join--> active --end--> completed`` and
    ``pending --timeout--> expired``. Nothing leaves completed or expired.
    """

    repository: SessionRepository
    broadcaster: EventBroadcaster
    pending_ttl_seconds: int = 1800
    code_generation_attempts: int = 5
    retry_attempts: int = 2
    retry_delay_seconds: float = 0.2
    code_generator: Callable[[], str] = field(default=generate_session_code)

    async def create_session(self, creator_id: str) -> CoupleSession:
        """Create a pending session with a fresh code."""
        for attempt in range(1, self.code_generation_attempts + 1):
            code = self.code_generator()
            created_at = datetime.now(tz=UTC)
            insert = CountedCall(
                partial(self.repository.insert_session, code, creator_id, created_at)
            )
            session = await self._store(insert, action="insert_session")
            if session is None and insert.retried:
                session = await self._find_own_session(code, creator_id, created_at)
            if session is not None:
                _logger.info(
                    "Created session %s for %s (attempt %s)",
                    session.id,
                    creator_id,
                    attempt,
                )
                return session
            _logger.info("Session code collision on attempt %s", attempt)
        raise CodeSpaceExhausted(
            f"no free code after {self.code_generation_attempts} attempts"
        )

    async def join_session(self, code: str, joining_user_id: str) -> CoupleSession:
        """Claim the partner slot of the session with this code."""
        cleaned = code.strip()
        if not is_valid_session_code(cleaned):
            raise InvalidSessionCode(f"malformed code {code!r}")

        session = await self._store(
            lambda: self.repository.claim_partner(
                cleaned, joining_user_id, self._pending_cutoff()
            ),
            action="claim_partner",
        )
        if session is None:
            return await self._explain_failed_join(cleaned, joining_user_id)

        _logger.info("User %s joined session %s", joining_user_id, session.id)
        await self.broadcaster.session_updated(session)
        return session

    async def end_session(self, session_id: UUID) -> CoupleSession:
        """Complete a session. Ending a terminal session is a no-op."""
        ended = await self._store(
            lambda: self.repository.complete_session(
                session_id, datetime.now(tz=UTC)
            ),
            action="complete_session",
        )
        if ended is not None:
            _logger.info("Ended session %s", session_id)
            await self.broadcaster.session_updated(ended)
            return ended

        current = await self._store(
            lambda: self.repository.get_session(session_id), action="get_session"
        )
        if current is None:
            raise SessionNotFound(f"session {session_id} does not exist")
        return current

    async def expire_stale_sessions(self) -> list[CoupleSession]:
        """Expire pending sessions nobody joined within the TTL."""
        expired = await self._store(
            lambda: self.repository.expire_pending(
                self._pending_cutoff(), datetime.now(tz=UTC)
            ),
            action="expire_pending",
        )
        for session in expired:
            _logger.info("Expired session %s", session.id)
            await self.broadcaster.session_updated(session)
        return expired

    async def get_session(self, session_id: UUID, user_id: str) -> CoupleSession:
        """Return a session visible to one of its participants."""
        session = await self._store(
            lambda: self.repository.get_session(session_id), action="get_session"
        )
        if session is None:
            raise SessionNotFound(f"session {session_id} does not exist")
        if not session.is_participant(user_id):
            raise NotAParticipant(f"{user_id} is not in session {session_id}")
        return session

    async def get_session_by_code(self, code: str) -> CoupleSession | None:
        """Return the latest session issued with this code, if any."""
        if not is_valid_session_code(code):
            return None
        return await self._store(
            lambda: self.repository.find_by_code(code), action="find_by_code"
        )

    async def list_active_sessions(self, user_id: str) -> list[CoupleSession]:
        """Return the user's pending and active sessions."""
        return await self._store(
            lambda: self.repository.list_sessions_for_user(
                user_id, [SessionStatus.PENDING, SessionStatus.ACTIVE]
            ),
            action="list_sessions_for_user",
        )

    async def _explain_failed_join(
        self, code: str, joining_user_id: str
    ) -> CoupleSession:
        current = await self._store(
            lambda: self.repository.find_by_code(code), action="find_by_code"
        )
        if current is None or not current.is_open:
            raise SessionNotFound(f"no open session for code {code}")
        if current.partner_id == joining_user_id:
            return current
        if current.creator_id == joining_user_id:
            raise SelfJoinRejected(f"{joining_user_id} created session {current.id}")
        if current.partner_id is not None:
            raise SessionAlreadyJoined(f"session {current.id} already has a partner")
        # Unclaimed but past the pending TTL.
        await self.expire_stale_sessions()
        raise SessionNotFound(f"session for code {code} has expired")

    async def _find_own_session(
        self, code: str, creator_id: str, created_at: datetime
    ) -> CoupleSession | None:
        """Return the session an earlier, failed insert of this call created."""
        current = await self._store(
            partial(self.repository.find_by_code, code), action="find_by_code"
        )
        if (
            current is None
            or current.creator_id != creator_id
            or current.created_at != created_at
        ):
            return None
        _logger.info("Session %s committed before a failed response", current.id)
        return current

    def _pending_cutoff(self) -> datetime:
        return datetime.now(tz=UTC) - timedelta(seconds=self.pending_ttl_seconds)

    async def _store(self, func: Callable[[], T], *, action: str) -> T:
        return await call_with_retry(
            func,
            action=action,
            attempts=self.retry_attempts,
            delay_seconds=self.retry_delay_seconds,
        )
