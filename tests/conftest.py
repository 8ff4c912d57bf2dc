"""Shared fixtures: catalog entry factory, WAV writer, and a populated index."""

import wave
from pathlib import Path
from typing import Callable

import pytest

from music_relay.domain.library.index import LibraryIndex
from music_relay.domain.library.metadata import make_entry_id
from music_relay.domain.library.models import CatalogEntry, LibrarySnapshot


@pytest.fixture
def make_entry() -> Callable[..., CatalogEntry]:
    """Factory for CatalogEntry objects with sensible defaults."""

    def _make(title: str = "Song", **overrides) -> CatalogEntry:
        file_path = overrides.pop("file_path", f"/music/{title}.mp3")
        values = {
            "id": make_entry_id(file_path),
            "title": title,
            "file_path": file_path,
            "file_name": Path(file_path).name,
            "format": Path(file_path).suffix.lstrip("."),
            "artist": "Artist",
            "album": "Album",
            "genre": ("Rock",),
            "duration_seconds": 180.0,
            "added_at": "2024-01-01T00:00:00+00:00",
            "modified_at": "2024-01-01T00:00:00+00:00",
        }
        values.update(overrides)
        return CatalogEntry(**values)

    return _make


@pytest.fixture
def write_wav() -> Callable[..., Path]:
    """Write a silent PCM WAV file and return its path."""

    def _write(path: Path, seconds: float = 1.0, sample_rate: int = 8000) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with wave.open(str(path), "wb") as wav:
            wav.setnchannels(1)
            wav.setsampwidth(2)
            wav.setframerate(sample_rate)
            wav.writeframes(b"\x00\x00" * int(sample_rate * seconds))
        return path

    return _write


@pytest.fixture
def sample_entries(make_entry) -> list[CatalogEntry]:
    return [
        make_entry("Paranoid Android", artist="Radiohead", album="OK Computer",
                   genre=("Alternative", "Rock"), duration_seconds=387.0),
        make_entry("Karma Police", artist="Radiohead", album="OK Computer",
                   genre=("Alternative",), duration_seconds=264.0),
        make_entry("Teardrop", artist="Massive Attack", album="Mezzanine",
                   genre=("Trip Hop",), duration_seconds=330.0,
                   file_path="/music/Teardrop.flac"),
        make_entry("Windowlicker", artist="Aphex Twin", album="Windowlicker",
                   genre=("Electronic",), duration_seconds=367.0,
                   file_path="/music/Windowlicker.wav"),
    ]


@pytest.fixture
def index(sample_entries) -> LibraryIndex:
    idx = LibraryIndex(max_results=100, default_page_size=2)
    idx.replace(LibrarySnapshot.build(sample_entries, root="/music"))
    return idx


@pytest.fixture
def anyio_backend() -> str:
    """The application is built on asyncio; run anyio-marked tests on it."""
    return "asyncio"
