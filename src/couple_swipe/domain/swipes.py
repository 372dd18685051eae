"""Domain models for swipe decisions and matches."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class SwipeDecision:
    """One participant's verdict on one item within a session."""

    session_id: UUID
    user_id: str
    item_id: str
    liked: bool
    recorded_at: datetime


@dataclass(frozen=True)
class Match:
    """Both participants of a session liked the same item."""

    session_id: UUID
    item_id: str
    created_at: datetime


@dataclass(frozen=True)
class SwipeResult:
    """Outcome of recording a swipe."""

    is_new: bool
    match: Match | None = None
