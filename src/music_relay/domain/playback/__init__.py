"""Playback domain - the shared "now playing" session.

This domain handles:
- Playback state machine (stopped, playing, paused)
- Explicit transition results for the HTTP and realtime boundaries
"""

from .session import (
    PlaybackErrorKind,
    PlaybackResult,
    PlaybackSession,
    PlaybackState,
    PlaybackStatus,
)

__all__ = [
    "PlaybackErrorKind",
    "PlaybackResult",
    "PlaybackSession",
    "PlaybackState",
    "PlaybackStatus",
]
