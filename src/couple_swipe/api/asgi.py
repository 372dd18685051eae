"""ASGI entrypoint for the couple session API."""

from couple_swipe.api.app import create_app
from couple_swipe.containers import build_container

app = create_app(build_container())
