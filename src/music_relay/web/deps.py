from fastapi import Request

from music_relay.context import AppContext


def get_context(request: Request) -> AppContext:
    """FastAPI dependency for the application context."""
    return request.app.state.context
