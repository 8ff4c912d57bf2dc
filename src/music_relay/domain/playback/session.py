"""
Shared playback session state machine.

One session per application: stopped -> playing <-> paused -> stopped.
The session only tracks logical state; it never decodes or outputs audio.

Transitions return a PlaybackResult instead of raising, so callers at the
HTTP/realtime boundary branch on an explicit error kind.
"""

import threading
from enum import Enum
from typing import NamedTuple, Optional

from loguru import logger

from music_relay.domain.exceptions import InvalidStateError, NotFoundError
from music_relay.domain.library.index import LibraryIndex
from music_relay.domain.library.models import CatalogEntry


class PlaybackStatus(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


class PlaybackErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"


class PlaybackState(NamedTuple):
    """Immutable playback state. entry is None iff status is STOPPED."""

    status: PlaybackStatus = PlaybackStatus.STOPPED
    entry: Optional[CatalogEntry] = None


class PlaybackResult(NamedTuple):
    """Outcome of a transition.

    state is the session state after the call (unchanged on failure). entry is
    the entry the transition acted on: the new entry for play, the current
    entry for pause/resume, and the entry that was stopped for stop.
    """

    state: PlaybackState
    entry: Optional[CatalogEntry] = None
    error: Optional[PlaybackErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> "PlaybackResult":
        """Convert a failed result into NotFoundError / InvalidStateError."""
        if self.error is PlaybackErrorKind.NOT_FOUND:
            raise NotFoundError(self.message)
        if self.error is PlaybackErrorKind.INVALID_STATE:
            raise InvalidStateError(self.message)
        return self


NOTHING_PLAYING = "Nothing is playing"


class PlaybackSession:
    """The single shared "now playing" state.

    Transitions are serialized by a lock and never block on I/O.
    """

    def __init__(self, index: LibraryIndex):
        self.index = index
        self._lock = threading.Lock()
        self._state = PlaybackState()

    def status(self) -> PlaybackState:
        return self._state

    def _fail(self, kind: PlaybackErrorKind, message: str) -> PlaybackResult:
        return PlaybackResult(self._state, error=kind, message=message)

    def play(self, entry_id: str) -> PlaybackResult:
        """Play an entry, replacing whatever is current (no queueing)."""
        with self._lock:
            entry = self.index.get_by_id(entry_id) if entry_id else None
            if entry is None:
                return self._fail(
                    PlaybackErrorKind.NOT_FOUND, f"Catalog entry not found: {entry_id}"
                )
            self._state = PlaybackState(PlaybackStatus.PLAYING, entry)
            state = self._state

        logger.info(f"Now playing: {entry.artist} - {entry.title}")
        return PlaybackResult(state, entry, message=f"Playing: {entry.title} - {entry.artist}")

    def pause(self) -> PlaybackResult:
        """playing -> paused (idempotent when already paused)."""
        with self._lock:
            if self._state.status is PlaybackStatus.STOPPED:
                return self._fail(PlaybackErrorKind.INVALID_STATE, NOTHING_PLAYING)
            self._state = self._state._replace(status=PlaybackStatus.PAUSED)
            state = self._state

        logger.info(f"Paused: {state.entry.title}")
        return PlaybackResult(state, state.entry, message=f"Paused: {state.entry.title}")

    def resume(self) -> PlaybackResult:
        """paused -> playing (idempotent when already playing)."""
        with self._lock:
            if self._state.status is PlaybackStatus.STOPPED:
                return self._fail(PlaybackErrorKind.INVALID_STATE, NOTHING_PLAYING)
            self._state = self._state._replace(status=PlaybackStatus.PLAYING)
            state = self._state

        logger.info(f"Resumed: {state.entry.title}")
        return PlaybackResult(state, state.entry, message=f"Resumed: {state.entry.title}")

    def stop(self) -> PlaybackResult:
        """Clear the current entry. Fails when already stopped."""
        with self._lock:
            if self._state.status is PlaybackStatus.STOPPED:
                return self._fail(PlaybackErrorKind.INVALID_STATE, NOTHING_PLAYING)
            stopped = self._state.entry
            self._state = PlaybackState()
            state = self._state

        logger.info(f"Stopped: {stopped.title}")
        return PlaybackResult(state, stopped, message=f"Stopped: {stopped.title}")

    def reconcile(self) -> bool:
        """Re-resolve the current entry after a snapshot swap.

        The entry is refreshed from the new snapshot, or the session resets to
        stopped if the entry no longer exists.

        Returns:
            True if the observable state changed
        """
        with self._lock:
            current = self._state.entry
            if current is None:
                return False

            fresh = self.index.get_by_id(current.id)
            if fresh is None:
                logger.info(f"Current entry left the catalog, stopping: {current.title}")
                self._state = PlaybackState()
                return True

            self._state = self._state._replace(entry=fresh)
            # added_at changes on every scan and is not a state change
            return fresh._replace(added_at=current.added_at) != current
