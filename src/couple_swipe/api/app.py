"""FastAPI application factory."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from couple_swipe.api.models import ErrorResponse
from couple_swipe.api.sessions import router as sessions_router
from couple_swipe.app_logging import configure_logging
from couple_swipe.containers import AppContainer
from couple_swipe.domain.errors import (
    CodeSpaceExhausted,
    CoupleModeError,
    NotAParticipant,
    SelfJoinRejected,
    SessionAlreadyJoined,
    SessionNotActive,
    SessionNotFound,
    StoreUnavailable,
    TransportUnavailable,
)

_STATUS_CODES: dict[type[CoupleModeError], int] = {
    SessionNotFound: status.HTTP_404_NOT_FOUND,
    SessionAlreadyJoined: status.HTTP_409_CONFLICT,
    SelfJoinRejected: status.HTTP_409_CONFLICT,
    SessionNotActive: status.HTTP_409_CONFLICT,
    NotAParticipant: status.HTTP_403_FORBIDDEN,
    CodeSpaceExhausted: status.HTTP_503_SERVICE_UNAVAILABLE,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
    TransportUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper = asyncio.create_task(_expire_sessions_periodically(app, logger))
        yield
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(sessions_router)

    @app.exception_handler(CoupleModeError)
    async def couple_mode_error(request: Request, exc: CoupleModeError) -> JSONResponse:
        """Render coordinator errors as user-facing JSON."""
        status_code = status_code_for(exc)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.warning("%s on %s: %s", exc.error_code, request.url.path, exc)
        body = ErrorResponse(error=exc.error_code, message=exc.user_message)
        return JSONResponse(status_code=status_code, content=body.model_dump())

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app


def status_code_for(exc: CoupleModeError) -> int:
    """Return the HTTP status for an error, honoring its base classes."""
    for cls in type(exc).__mro__:
        if cls in _STATUS_CODES:
            return _STATUS_CODES[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def _expire_sessions_periodically(app: FastAPI, logger: logging.Logger) -> None:
    """Expire pending sessions nobody joined, on a fixed interval."""
    container: AppContainer = app.state.container
    interval = container.settings.expiry_sweep_interval_seconds
    while True:
        try:
            await container.session_registry.expire_stale_sessions()
        except Exception:
            logger.exception("Failed to expire stale sessions")
        await asyncio.sleep(interval)
