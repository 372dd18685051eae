"""Pydantic models for the couple session API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from couple_swipe.domain.events import SessionSnapshot
from couple_swipe.domain.sessions import CoupleSession
from couple_swipe.domain.swipes import Match, SwipeDecision, SwipeResult


class JoinSessionRequest(BaseModel):
    """Join payload carrying the shared code."""

    code: str


class SwipeRequest(BaseModel):
    """Swipe payload."""

    item_id: str = Field(min_length=1)
    liked: bool


class SessionResponse(BaseModel):
    """Couple session as seen by a participant."""

    id: UUID
    code: str
    creator_id: str
    partner_id: str | None = None
    status: str
    created_at: datetime
    ended_at: datetime | None = None

    @classmethod
    def from_domain(cls, session: CoupleSession) -> "SessionResponse":
        return cls(
            id=session.id,
            code=session.code,
            creator_id=session.creator_id,
            partner_id=session.partner_id,
            status=session.status.value,
            created_at=session.created_at,
            ended_at=session.ended_at,
        )


class MatchResponse(BaseModel):
    """Mutually liked item."""

    session_id: UUID
    item_id: str
    created_at: datetime

    @classmethod
    def from_domain(cls, match: Match) -> "MatchResponse":
        return cls(
            session_id=match.session_id,
            item_id=match.item_id,
            created_at=match.created_at,
        )


class SwipeResponse(BaseModel):
    """Result of recording a swipe."""

    is_new: bool
    match: MatchResponse | None = None

    @classmethod
    def from_domain(cls, result: SwipeResult) -> "SwipeResponse":
        return cls(
            is_new=result.is_new,
            match=MatchResponse.from_domain(result.match) if result.match else None,
        )


class SwipeDecisionResponse(BaseModel):
    """One of the caller's own decisions."""

    item_id: str
    liked: bool
    recorded_at: datetime

    @classmethod
    def from_domain(cls, decision: SwipeDecision) -> "SwipeDecisionResponse":
        return cls(
            item_id=decision.item_id,
            liked=decision.liked,
            recorded_at=decision.recorded_at,
        )


class SnapshotResponse(BaseModel):
    """Full resync state."""

    type: str = "snapshot"
    session: SessionResponse
    matches: list[MatchResponse]
    sequence: int

    @classmethod
    def from_domain(cls, snapshot: SessionSnapshot) -> "SnapshotResponse":
        return cls(
            session=SessionResponse.from_domain(snapshot.session),
            matches=[MatchResponse.from_domain(match) for match in snapshot.matches],
            sequence=snapshot.sequence,
        )


class ErrorResponse(BaseModel):
    """Error body returned for coordinator failures."""

    error: str
    message: str
