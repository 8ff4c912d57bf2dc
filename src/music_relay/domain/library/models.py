"""
Music library domain models.

Contains data structures for catalog entries and catalog snapshots.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, NamedTuple, Optional

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"
UNKNOWN_GENRE = "Unknown"


class CatalogEntry(NamedTuple):
    """Represents one indexed audio file.

    Every field has a non-None fallback so a partially tagged (or untaggable)
    file still yields a complete entry. Raw cover image bytes are never stored;
    cover_mime_type plus file_path is enough to fetch them on demand.
    """

    id: str
    title: str
    file_path: str  # Absolute canonical path, unique within a snapshot
    file_name: str
    format: str  # Lower-case extension without dot
    artist: str = UNKNOWN_ARTIST
    album: str = UNKNOWN_ALBUM
    genre: tuple[str, ...] = (UNKNOWN_GENRE,)
    duration_seconds: float = 0.0
    year: int = 0
    track_number: int = 0
    disc_number: int = 0
    has_cover_art: bool = False
    cover_mime_type: str = ""
    bitrate: int = 0  # bits per second
    sample_rate: int = 0  # Hz
    channel_count: int = 0
    file_size: int = 0
    added_at: str = ""  # ISO timestamp of the scan that produced this entry
    modified_at: str = ""  # ISO timestamp of the file mtime


@dataclass(frozen=True)
class LibrarySnapshot:
    """One immutable version of the catalog.

    Replaced wholesale by a scan, never mutated in place.
    """

    entries: tuple[CatalogEntry, ...] = ()
    root: str = ""
    scanned_at: Optional[datetime] = None
    by_id: Mapping[str, CatalogEntry] = field(default_factory=dict, repr=False)

    @classmethod
    def build(
        cls,
        entries: list[CatalogEntry],
        root: str = "",
        scanned_at: Optional[datetime] = None,
    ) -> "LibrarySnapshot":
        """Create a snapshot, building the id lookup table once."""
        entries = tuple(entries)
        return cls(
            entries=entries,
            root=root,
            scanned_at=scanned_at,
            by_id={entry.id: entry for entry in entries},
        )

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, entry_id: str) -> Optional[CatalogEntry]:
        return self.by_id.get(entry_id)
