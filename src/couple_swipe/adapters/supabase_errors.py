"""Translation of Supabase client failures into coordinator errors."""

from collections.abc import Iterator
from contextlib import contextmanager

import httpx
from postgrest.exceptions import APIError

from couple_swipe.domain.errors import StoreUnavailable

_UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: APIError) -> bool:
    """Return true when PostgREST reports a unique constraint violation."""
    return exc.code == _UNIQUE_VIOLATION


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Map transport and PostgREST failures to ``StoreUnavailable``.

    Unique violations pass through untouched so callers can treat them as
    the "already exists" outcome of an insert-if-absent.
    """
    try:
        yield
    except APIError as exc:
        if is_unique_violation(exc):
            raise
        raise StoreUnavailable(f"{action}: {exc.message}") from exc
    except httpx.HTTPError as exc:
        raise StoreUnavailable(f"{action}: {exc}") from exc
