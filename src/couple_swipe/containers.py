"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from couple_swipe.adapters.memory_event_hub import InMemoryEventHub
from couple_swipe.adapters.supabase_match_repository import SupabaseMatchRepository
from couple_swipe.adapters.supabase_realtime_client import HttpxRealtimeClient
from couple_swipe.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from couple_swipe.adapters.supabase_swipe_repository import SupabaseSwipeRepository
from couple_swipe.config import Settings
from couple_swipe.services.broadcaster import EventBroadcaster, EventTransport
from couple_swipe.services.matches import MatchDetector, MatchRepository
from couple_swipe.services.registry import SessionRegistry, SessionRepository
from couple_swipe.services.snapshots import SessionSnapshotService
from couple_swipe.services.swipes import SwipeRecorder, SwipeRepository


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    event_hub: InMemoryEventHub
    broadcaster: EventBroadcaster
    session_registry: SessionRegistry
    swipe_recorder: SwipeRecorder
    match_detector: MatchDetector
    snapshot_service: SessionSnapshotService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseSessionRepository(supabase_client)
    swipe_repository = SupabaseSwipeRepository(supabase_client)
    match_repository = SupabaseMatchRepository(supabase_client)

    event_hub = InMemoryEventHub(queue_size=resolved_settings.subscriber_queue_size)
    transports: list[EventTransport] = [event_hub]
    realtime_client: HttpxRealtimeClient | None = None
    if resolved_settings.realtime_broadcast_enabled:
        realtime_client = HttpxRealtimeClient.create(
            supabase_url=resolved_settings.supabase_url,
            api_key=resolved_settings.supabase_service_key,
        )
        transports.append(realtime_client)
    broadcaster = EventBroadcaster(transports=transports)

    return wire_services(
        settings=resolved_settings,
        session_repository=session_repository,
        swipe_repository=swipe_repository,
        match_repository=match_repository,
        event_hub=event_hub,
        broadcaster=broadcaster,
        close_resources=_closer(realtime_client),
    )


def wire_services(  # noqa: PLR0913
    *,
    settings: Settings,
    session_repository: SessionRepository,
    swipe_repository: SwipeRepository,
    match_repository: MatchRepository,
    event_hub: InMemoryEventHub,
    broadcaster: EventBroadcaster,
    close_resources: Callable[[], Awaitable[None]],
) -> AppContainer:
    """Build the services on top of the given repositories and transports."""
    retry = {
        "retry_attempts": settings.store_retry_attempts,
        "retry_delay_seconds": settings.store_retry_delay_seconds,
    }
    session_registry = SessionRegistry(
        repository=session_repository,
        broadcaster=broadcaster,
        pending_ttl_seconds=settings.pending_session_ttl_seconds,
        code_generation_attempts=settings.code_generation_attempts,
        **retry,
    )
    match_detector = MatchDetector(
        repository=match_repository,
        session_repository=session_repository,
        swipe_repository=swipe_repository,
        broadcaster=broadcaster,
        **retry,
    )
    swipe_recorder = SwipeRecorder(
        repository=swipe_repository,
        session_repository=session_repository,
        broadcaster=broadcaster,
        match_check=match_detector.check_and_create_match,
        **retry,
    )
    snapshot_service = SessionSnapshotService(
        registry=session_registry,
        match_detector=match_detector,
        broadcaster=broadcaster,
    )
    return AppContainer(
        settings=settings,
        event_hub=event_hub,
        broadcaster=broadcaster,
        session_registry=session_registry,
        swipe_recorder=swipe_recorder,
        match_detector=match_detector,
        snapshot_service=snapshot_service,
        close_resources=close_resources,
    )


def _closer(
    realtime_client: HttpxRealtimeClient | None,
) -> Callable[[], Awaitable[None]]:
    async def close_resources() -> None:
        if realtime_client is not None:
            await realtime_client.close()

    return close_resources
