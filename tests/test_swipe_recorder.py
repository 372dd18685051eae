"""Tests for swipe recording."""

import asyncio
from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest

from couple_swipe.config import Settings
from couple_swipe.containers import AppContainer
from couple_swipe.domain.errors import (
    NotAParticipant,
    SessionNotActive,
    SessionNotFound,
)
from couple_swipe.domain.events import EventKind
from couple_swipe.domain.swipes import Match
from couple_swipe.services.broadcaster import EventBroadcaster
from couple_swipe.services.swipes import SwipeRecorder
from tests.conftest import (
    InMemoryMatchRepository,
    InMemorySessionRepository,
    InMemorySwipeRepository,
    LostResponseSwipeRepository,
    RecordingTransport,
    build_test_container,
)


def _active_session(container: AppContainer) -> UUID:
    registry = container.session_registry
    session = asyncio.run(registry.create_session("userA"))
    asyncio.run(registry.join_session(session.code, "userB"))
    return session.id


def test_record_swipe_is_idempotent(
    container: AppContainer, swipe_repository: InMemorySwipeRepository
) -> None:
    session_id = _active_session(container)
    recorder = container.swipe_recorder

    first = asyncio.run(recorder.record_swipe(session_id, "userA", "item_1", True))
    second = asyncio.run(recorder.record_swipe(session_id, "userA", "item_1", True))

    assert first.is_new is True
    assert second.is_new is False
    assert len(swipe_repository.decisions) == 1


def test_later_conflicting_swipe_keeps_first_decision(
    container: AppContainer, swipe_repository: InMemorySwipeRepository
) -> None:
    session_id = _active_session(container)
    recorder = container.swipe_recorder

    asyncio.run(recorder.record_swipe(session_id, "userA", "item_1", False))
    result = asyncio.run(recorder.record_swipe(session_id, "userA", "item_1", True))

    assert result.is_new is False
    stored = swipe_repository.get_decision(session_id, "userA", "item_1")
    assert stored is not None
    assert stored.liked is False


def test_swipe_on_pending_session_is_rejected(container: AppContainer) -> None:
    session = asyncio.run(container.session_registry.create_session("userA"))

    with pytest.raises(SessionNotActive):
        asyncio.run(
            container.swipe_recorder.record_swipe(session.id, "userA", "item_1", True)
        )


def test_swipe_on_unknown_session_is_not_found(container: AppContainer) -> None:
    with pytest.raises(SessionNotFound):
        asyncio.run(
            container.swipe_recorder.record_swipe(uuid4(), "userA", "item_1", True)
        )


def test_swipe_by_outsider_is_rejected(
    container: AppContainer, swipe_repository: InMemorySwipeRepository
) -> None:
    session_id = _active_session(container)

    with pytest.raises(NotAParticipant):
        asyncio.run(
            container.swipe_recorder.record_swipe(session_id, "userC", "item_1", True)
        )

    assert swipe_repository.decisions == {}


def test_swipe_after_end_is_rejected(
    container: AppContainer,
    swipe_repository: InMemorySwipeRepository,
    match_repository: InMemoryMatchRepository,
) -> None:
    session_id = _active_session(container)
    recorder = container.swipe_recorder
    asyncio.run(recorder.record_swipe(session_id, "userA", "item_taco", True))
    asyncio.run(container.session_registry.end_session(session_id))

    with pytest.raises(SessionNotActive):
        asyncio.run(recorder.record_swipe(session_id, "userB", "item_taco", True))

    assert len(swipe_repository.decisions) == 1
    assert match_repository.matches == {}


def test_new_swipe_publishes_partner_swiped_without_decision(
    container: AppContainer, transport: RecordingTransport
) -> None:
    session_id = _active_session(container)

    asyncio.run(
        container.swipe_recorder.record_swipe(session_id, "userA", "item_1", False)
    )
    asyncio.run(
        container.swipe_recorder.record_swipe(session_id, "userA", "item_1", False)
    )

    swiped = [e for e in transport.events if e.kind == EventKind.PARTNER_SWIPED]
    assert len(swiped) == 1
    assert swiped[0].payload == {"item_id": "item_1", "swiped_by": "userA"}


def test_only_new_likes_trigger_match_check() -> None:
    session_repository = InMemorySessionRepository()
    calls: list[tuple[UUID, str, str]] = []

    async def match_check(session_id: UUID, item_id: str, user_id: str) -> Match | None:
        calls.append((session_id, item_id, user_id))
        return None

    recorder = SwipeRecorder(
        repository=InMemorySwipeRepository(),
        session_repository=session_repository,
        broadcaster=EventBroadcaster(),
        match_check=match_check,
    )
    now = datetime.now(tz=UTC)
    session = session_repository.insert_session("123456", "userA", now)
    assert session is not None
    long_ago = datetime(2000, 1, 1, tzinfo=UTC)
    session_repository.claim_partner("123456", "userB", long_ago)

    asyncio.run(recorder.record_swipe(session.id, "userA", "item_1", False))
    asyncio.run(recorder.record_swipe(session.id, "userA", "item_2", True))
    asyncio.run(recorder.record_swipe(session.id, "userA", "item_2", True))

    assert calls == [(session.id, "item_2", "userA")]


def test_list_own_swipes_hides_partner_decisions(container: AppContainer) -> None:
    session_id = _active_session(container)
    recorder = container.swipe_recorder
    asyncio.run(recorder.record_swipe(session_id, "userA", "item_1", True))
    asyncio.run(recorder.record_swipe(session_id, "userB", "item_2", False))

    own = asyncio.run(recorder.list_own_swipes(session_id, "userA"))

    assert [(d.user_id, d.item_id) for d in own] == [("userA", "item_1")]
    with pytest.raises(NotAParticipant):
        asyncio.run(recorder.list_own_swipes(session_id, "userC"))


def test_swipe_committed_before_lost_response_still_matches(
    settings: Settings,
    session_repository: InMemorySessionRepository,
    match_repository: InMemoryMatchRepository,
    transport: RecordingTransport,
) -> None:
    swipes = LostResponseSwipeRepository()
    container = build_test_container(
        settings, session_repository, swipes, match_repository, transport
    )
    session_id = _active_session(container)
    recorder = container.swipe_recorder
    asyncio.run(recorder.record_swipe(session_id, "userA", "item_pizza", True))

    swipes.failures = 1
    result = asyncio.run(recorder.record_swipe(session_id, "userB", "item_pizza", True))

    assert result.is_new is True
    assert result.match is not None
    assert len(swipes.decisions) == 2
    assert list(match_repository.matches) == [(session_id, "item_pizza")]
    kinds = transport.kinds(session_id)
    assert kinds.count(EventKind.PARTNER_SWIPED) == 2
    assert kinds.count(EventKind.MATCH_CREATED) == 1


def test_retried_duplicate_of_earlier_swipe_stays_duplicate(
    settings: Settings,
    session_repository: InMemorySessionRepository,
    match_repository: InMemoryMatchRepository,
    transport: RecordingTransport,
) -> None:
    swipes = LostResponseSwipeRepository()
    container = build_test_container(
        settings, session_repository, swipes, match_repository, transport
    )
    session_id = _active_session(container)
    recorder = container.swipe_recorder
    asyncio.run(recorder.record_swipe(session_id, "userA", "item_1", False))

    swipes.failures = 1
    result = asyncio.run(recorder.record_swipe(session_id, "userA", "item_1", False))

    assert result.is_new is False
    assert transport.kinds(session_id).count(EventKind.PARTNER_SWIPED) == 1
