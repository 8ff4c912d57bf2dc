"""
In-memory library index: search, filtering, pagination and facets.

The index owns exactly one LibrarySnapshot reference. A scan installs a new
snapshot by swapping that reference; every read captures the reference once
and works on it, so readers never see a half-built catalog.
"""

import math
from dataclasses import dataclass
from typing import Any, Mapping, NamedTuple, Optional

from .metadata import format_duration, format_size
from .models import CatalogEntry, LibrarySnapshot


def _parse_duration(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid duration value: {value!r}") from None


@dataclass(frozen=True)
class LibraryFilters:
    """Structured predicates, combined with logical AND.

    artist, album and genre match case-insensitive substrings (genre matches
    any element). format matches exactly, ignoring case. Duration bounds are
    inclusive.
    """

    artist: Optional[str] = None
    album: Optional[str] = None
    genre: Optional[str] = None
    format: Optional[str] = None
    min_duration: Optional[float] = None
    max_duration: Optional[float] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "LibraryFilters":
        """Build filters from wire/query keys (camelCase or snake_case).

        Raises:
            ValueError: If a duration bound is not numeric
        """
        if not data:
            return cls()

        def text(key: str) -> Optional[str]:
            value = data.get(key)
            return str(value) if value not in (None, "") else None

        return cls(
            artist=text("artist"),
            album=text("album"),
            genre=text("genre"),
            format=text("format"),
            min_duration=_parse_duration(data.get("minDuration", data.get("min_duration"))),
            max_duration=_parse_duration(data.get("maxDuration", data.get("max_duration"))),
        )

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.artist,
                self.album,
                self.genre,
                self.format,
                self.min_duration,
                self.max_duration,
            )
        )

    def matches(self, entry: CatalogEntry) -> bool:
        if self.artist and self.artist.lower() not in entry.artist.lower():
            return False
        if self.album and self.album.lower() not in entry.album.lower():
            return False
        if self.genre:
            needle = self.genre.lower()
            if not any(needle in g.lower() for g in entry.genre):
                return False
        if self.format and entry.format != self.format.lower().lstrip("."):
            return False
        if self.min_duration is not None and entry.duration_seconds < self.min_duration:
            return False
        if self.max_duration is not None and entry.duration_seconds > self.max_duration:
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        """Wire form with camelCase keys, omitting unset predicates."""
        data = {
            "artist": self.artist,
            "album": self.album,
            "genre": self.genre,
            "format": self.format,
            "minDuration": self.min_duration,
            "maxDuration": self.max_duration,
        }
        return {key: value for key, value in data.items() if value is not None}


class Page(NamedTuple):
    """One page of a listing."""

    items: list[CatalogEntry]
    total: int
    page: int
    page_size: int
    total_pages: int


def matches_query(entry: CatalogEntry, query: str) -> bool:
    """Case-insensitive substring match over title/artist/album/any genre."""
    query = query.lower()
    return (
        query in entry.title.lower()
        or query in entry.artist.lower()
        or query in entry.album.lower()
        or any(query in g.lower() for g in entry.genre)
    )


class LibraryIndex:
    """Holds the current catalog snapshot and answers read queries."""

    def __init__(self, max_results: int = 100, default_page_size: int = 50):
        self.max_results = max_results
        self.default_page_size = default_page_size
        self._snapshot = LibrarySnapshot()

    @property
    def snapshot(self) -> LibrarySnapshot:
        return self._snapshot

    def replace(self, snapshot: LibrarySnapshot) -> None:
        """Install a new snapshot (single reference swap)."""
        self._snapshot = snapshot

    def __len__(self) -> int:
        return len(self._snapshot)

    def _apply_filters(
        self, entries: tuple[CatalogEntry, ...], filters: Optional[LibraryFilters]
    ) -> list[CatalogEntry]:
        if filters is None or filters.is_empty():
            return list(entries)
        return [entry for entry in entries if filters.matches(entry)]

    def _cap(self, results: list[CatalogEntry]) -> list[CatalogEntry]:
        # Silent truncation; list() paginates instead
        if self.max_results and len(results) > self.max_results:
            return results[: self.max_results]
        return results

    def search(
        self, query: str = "", filters: Optional[LibraryFilters] = None
    ) -> list[CatalogEntry]:
        """Search the catalog, keeping snapshot order.

        An empty query returns the filtered set. Results are capped at
        max_results.
        """
        entries = self._snapshot.entries
        query = (query or "").strip()
        if query:
            entries = tuple(entry for entry in entries if matches_query(entry, query))
        return self._cap(self._apply_filters(entries, filters))

    def filter(self, filters: LibraryFilters) -> list[CatalogEntry]:
        """Apply structured predicates only. Results are capped at max_results."""
        return self._cap(self._apply_filters(self._snapshot.entries, filters))

    def get_by_id(self, entry_id: str) -> Optional[CatalogEntry]:
        return self._snapshot.get(entry_id)

    def distinct_artists(self) -> list[str]:
        return sorted({entry.artist for entry in self._snapshot.entries})

    def distinct_albums(self, artist: Optional[str] = None) -> list[str]:
        """Albums, optionally restricted to an exact artist name."""
        entries = self._snapshot.entries
        if artist:
            entries = tuple(entry for entry in entries if entry.artist == artist)
        return sorted({entry.album for entry in entries})

    def distinct_genres(self) -> list[str]:
        return sorted({g for entry in self._snapshot.entries for g in entry.genre})

    def stats(self) -> dict[str, Any]:
        """Get statistics about the music library."""
        entries = self._snapshot.entries
        total_duration = sum(entry.duration_seconds for entry in entries)
        total_size = sum(entry.file_size for entry in entries)

        formats: dict[str, int] = {}
        for entry in entries:
            formats[entry.format] = formats.get(entry.format, 0) + 1

        return {
            "total_entries": len(entries),
            "total_duration": total_duration,
            "total_duration_str": format_duration(total_duration),
            "total_size": total_size,
            "total_size_str": format_size(total_size),
            "artists": len({entry.artist for entry in entries}),
            "albums": len({entry.album for entry in entries}),
            "genres": len({g for entry in entries for g in entry.genre}),
            "formats": formats,
            "entries_with_cover_art": sum(1 for entry in entries if entry.has_cover_art),
        }

    # Defined last: the method name shadows the builtin for later annotations
    def list(
        self,
        filters: Optional[LibraryFilters] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Page:
        """Paginate the filtered catalog. Out-of-range pages are empty, never errors."""
        page = page if page and page >= 1 else 1
        page_size = page_size if page_size and page_size >= 1 else self.default_page_size

        results = self._apply_filters(self._snapshot.entries, filters)
        start = (page - 1) * page_size
        return Page(
            items=results[start : start + page_size],
            total=len(results),
            page=page,
            page_size=page_size,
            total_pages=math.ceil(len(results) / page_size),
        )
