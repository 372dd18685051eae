"""Couple session endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import (
    APIRouter,
    Depends,
    Header,
    HTTPException,
    Request,
    WebSocket,
    WebSocketDisconnect,
    status,
)

from couple_swipe.api.models import (
    JoinSessionRequest,
    MatchResponse,
    SessionResponse,
    SnapshotResponse,
    SwipeDecisionResponse,
    SwipeRequest,
    SwipeResponse,
)
from couple_swipe.domain.errors import CoupleModeError

if TYPE_CHECKING:
    from couple_swipe.adapters.memory_event_hub import Subscription
    from couple_swipe.containers import AppContainer

router = APIRouter(prefix="/sessions", tags=["sessions"])

_logger = logging.getLogger(__name__)

_RESYNC_COMMAND = "resync"


async def require_user(x_user_id: str | None = Header(default=None)) -> str:
    """Return the caller's id as supplied by the upstream identity provider."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return x_user_id.strip()


def _container(request: Request) -> AppContainer:
    return request.app.state.container


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_session(
    request: Request, user_id: str = Depends(require_user)
) -> SessionResponse:
    """Create a pending session and return its shareable code."""
    session = await _container(request).session_registry.create_session(user_id)
    return SessionResponse.from_domain(session)


@router.post("/join")
async def join_session(
    body: JoinSessionRequest, request: Request, user_id: str = Depends(require_user)
) -> SessionResponse:
    """Join a session by its six-digit code."""
    session = await _container(request).session_registry.join_session(
        body.code, user_id
    )
    return SessionResponse.from_domain(session)


@router.get("/active")
async def list_active_sessions(
    request: Request, user_id: str = Depends(require_user)
) -> dict[str, list[SessionResponse]]:
    """Return the caller's pending and active sessions."""
    sessions = await _container(request).session_registry.list_active_sessions(
        user_id
    )
    return {"sessions": [SessionResponse.from_domain(item) for item in sessions]}


@router.get("/{session_id}")
async def get_session(
    session_id: UUID, request: Request, user_id: str = Depends(require_user)
) -> SessionResponse:
    """Return the current session state."""
    session = await _container(request).session_registry.get_session(
        session_id, user_id
    )
    return SessionResponse.from_domain(session)


@router.post("/{session_id}/end")
async def end_session(
    session_id: UUID, request: Request, user_id: str = Depends(require_user)
) -> SessionResponse:
    """End a session for both participants."""
    registry = _container(request).session_registry
    await registry.get_session(session_id, user_id)
    session = await registry.end_session(session_id)
    return SessionResponse.from_domain(session)


@router.post("/{session_id}/swipes")
async def record_swipe(
    session_id: UUID,
    body: SwipeRequest,
    request: Request,
    user_id: str = Depends(require_user),
) -> SwipeResponse:
    """Record the caller's decision on an item. Safe to retry."""
    result = await _container(request).swipe_recorder.record_swipe(
        session_id, user_id, body.item_id, body.liked
    )
    return SwipeResponse.from_domain(result)


@router.get("/{session_id}/swipes/me")
async def list_own_swipes(
    session_id: UUID, request: Request, user_id: str = Depends(require_user)
) -> dict[str, list[SwipeDecisionResponse]]:
    """Return the caller's own decisions in this session."""
    decisions = await _container(request).swipe_recorder.list_own_swipes(
        session_id, user_id
    )
    return {"swipes": [SwipeDecisionResponse.from_domain(item) for item in decisions]}


@router.get("/{session_id}/matches")
async def list_matches(
    session_id: UUID, request: Request, user_id: str = Depends(require_user)
) -> dict[str, list[MatchResponse]]:
    """Return every match of the session."""
    container = _container(request)
    await container.session_registry.get_session(session_id, user_id)
    matches = await container.match_detector.list_matches(session_id)
    return {"matches": [MatchResponse.from_domain(item) for item in matches]}


@router.get("/{session_id}/snapshot")
async def get_snapshot(
    session_id: UUID, request: Request, user_id: str = Depends(require_user)
) -> SnapshotResponse:
    """Return the full resync state: session, matches and event sequence."""
    snapshot = await _container(request).snapshot_service.snapshot(
        session_id, user_id
    )
    return SnapshotResponse.from_domain(snapshot)


@router.websocket("/{session_id}/events")
async def session_events(websocket: WebSocket, session_id: UUID) -> None:
    """Stream session events after an initial snapshot.

    Clients send ``resync`` to receive a fresh snapshot at any time.
    """
    container: AppContainer = websocket.app.state.container
    user_id = (websocket.headers.get("x-user-id") or "").strip()
    if not user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    channel = _EventChannel(websocket, container, session_id, user_id)
    async with container.event_hub.subscribe(session_id) as subscription:
        try:
            await channel.send_snapshot()
        except CoupleModeError as exc:
            await websocket.send_json(
                {"type": "error", "error": exc.error_code, "message": exc.user_message}
            )
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        await channel.run(subscription)


class _EventChannel:
    """One client's WebSocket connection to a session channel."""

    def __init__(
        self,
        websocket: WebSocket,
        container: AppContainer,
        session_id: UUID,
        user_id: str,
    ) -> None:
        self.websocket = websocket
        self.container = container
        self.session_id = session_id
        self.user_id = user_id
        self._send_lock = asyncio.Lock()

    async def send_snapshot(self) -> None:
        snapshot = await self.container.snapshot_service.snapshot(
            self.session_id, self.user_id
        )
        await self._send(SnapshotResponse.from_domain(snapshot).model_dump(mode="json"))

    async def run(self, subscription: Subscription) -> None:
        tasks = {
            asyncio.create_task(self._forward_events(subscription)),
            asyncio.create_task(self._read_commands()),
        }
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                raise exc
        _logger.debug("Client %s left session %s", self.user_id, self.session_id)

    async def _forward_events(self, subscription: Subscription) -> None:
        while True:
            event = await subscription.next_event()
            if event is None:
                await self.send_snapshot()
                continue
            await self._send({"type": "event", **event.to_message()})

    async def _read_commands(self) -> None:
        while True:
            message = await self.websocket.receive_text()
            if message.strip() == _RESYNC_COMMAND:
                await self.send_snapshot()

    async def _send(self, message: dict[str, object]) -> None:
        async with self._send_lock:
            await self.websocket.send_json(message)
