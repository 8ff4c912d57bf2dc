"""Domain exceptions for library, playback, and realtime errors."""


class MusicRelayError(Exception):
    """Base exception for Music Relay operations."""

    pass


class LibraryRootError(MusicRelayError, OSError):
    """Raised when the library root directory cannot be read.

    Fatal to the scan attempt, never to the process.
    """

    def __init__(self, root: str, reason: str):
        self.root = root
        self.reason = reason
        super().__init__(f"Library root not accessible: {root} ({reason})")


class NotFoundError(MusicRelayError):
    """Raised when a catalog id does not resolve in the current snapshot."""

    pass


class InvalidStateError(MusicRelayError):
    """Raised when a playback transition is not allowed in the current state."""

    pass


class MessageParseError(MusicRelayError):
    """Raised when a realtime message cannot be parsed or validated."""

    pass
