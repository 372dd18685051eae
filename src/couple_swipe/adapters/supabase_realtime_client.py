"""Supabase Realtime broadcast adapter."""

from dataclasses import dataclass

import httpx

from couple_swipe.domain.errors import TransportUnavailable
from couple_swipe.domain.events import SessionEvent
from couple_swipe.services.broadcaster import EventTransport


def realtime_topic(event: SessionEvent) -> str:
    """Return the Realtime topic clients subscribe to for a session."""
    return f"couple_session:{event.channel}"


@dataclass
class HttpxRealtimeClient(EventTransport):
    """Publishes session events through Supabase Realtime's broadcast API."""

    supabase_url: str
    api_key: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, supabase_url: str, api_key: str) -> "HttpxRealtimeClient":
        """Create a client with a managed httpx session."""
        return cls(
            supabase_url=supabase_url.rstrip("/"),
            api_key=api_key,
            http_client=httpx.AsyncClient(),
        )

    async def publish(self, event: SessionEvent) -> None:
        """Broadcast an event on the session's Realtime topic."""
        url = f"{self.supabase_url}/realtime/v1/api/broadcast"
        payload = {
            "messages": [
                {
                    "topic": realtime_topic(event),
                    "event": event.kind.value,
                    "payload": event.to_message(),
                }
            ]
        }
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
        }
        try:
            response = await self.http_client.post(
                url, json=payload, headers=headers, timeout=10
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransportUnavailable(str(exc)) from exc

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()
