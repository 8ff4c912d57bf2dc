"""
Audio metadata extraction for catalog entries.

Reads embedded tags and stream properties with Mutagen and turns them into
CatalogEntry objects. Extraction never fails outward: unreadable files degrade
to a fallback entry derived from the filename.
"""

import base64
import hashlib
import os
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, NamedTuple, Optional

from loguru import logger
from mutagen import File as MutagenFile
from mutagen.flac import Picture
from mutagen.mp4 import MP4Cover

from .models import (
    CatalogEntry,
    UNKNOWN_ALBUM,
    UNKNOWN_ARTIST,
    UNKNOWN_GENRE,
)

# Tag names tried in order: ID3, MP4, Vorbis/FLAC
TITLE_TAGS = ["TIT2", "\xa9nam", "title"]
ARTIST_TAGS = ["TPE1", "\xa9ART", "artist"]
ALBUM_TAGS = ["TALB", "\xa9alb", "album"]
GENRE_TAGS = ["TCON", "\xa9gen", "genre"]
DATE_TAGS = ["TDRC", "TYER", "\xa9day", "date", "year"]
TRACK_TAGS = ["TRCK", "trkn", "tracknumber"]
DISC_TAGS = ["TPOS", "disk", "discnumber"]

_YEAR_RE = re.compile(r"(\d{4})")
_LEADING_INT_RE = re.compile(r"^\s*(\d+)")


class CoverArt(NamedTuple):
    """Embedded cover image, read on demand."""

    data: bytes
    mime_type: str


def make_entry_id(file_path: str, strategy: str = "path") -> str:
    """Generate a catalog id.

    "path" derives the id from the canonical path, so ids survive rescans.
    "random" generates a fresh id on every scan.
    """
    if strategy == "random":
        return uuid.uuid4().hex
    return hashlib.sha1(file_path.encode("utf-8")).hexdigest()[:16]


def _get_raw_values(audio_file: Any, tag_names: list[str]) -> list[Any]:
    """Get the raw values of the first tag present, trying multiple tag names."""
    for tag_name in tag_names:
        try:
            value = audio_file.get(tag_name)
        except (KeyError, ValueError):
            # Some formats (like Vorbis) raise ValueError for invalid key names
            continue
        if not value:
            continue

        if hasattr(value, "genres"):
            # ID3 TCON resolves numeric genre references
            return list(value.genres)
        if hasattr(value, "text"):
            return list(value.text)
        if isinstance(value, list):
            return value
        return [value]
    return []


def get_tag_values(audio_file: Any, tag_names: list[str]) -> list[str]:
    """Get every non-blank string value of a tag."""
    values = []
    for value in _get_raw_values(audio_file, tag_names):
        text = str(value).strip()
        if text:
            values.append(text)
    return values


def get_tag_value(audio_file: Any, tag_names: list[str]) -> Optional[str]:
    """Get tag value, trying multiple possible tag names."""
    values = get_tag_values(audio_file, tag_names)
    return values[0] if values else None


def parse_position(value: Any) -> int:
    """Parse a track/disc position ("3/12", (3, 12) or 3) into its number."""
    if isinstance(value, tuple):
        value = value[0] if value else 0
    if isinstance(value, int):
        return max(value, 0)
    match = _LEADING_INT_RE.match(str(value))
    return int(match.group(1)) if match else 0


def parse_year(value: Any) -> int:
    """Take the first four-digit year out of a date tag ("2004-05-01" -> 2004)."""
    match = _YEAR_RE.search(str(value))
    return int(match.group(1)) if match else 0


def _find_picture(audio_file: Any) -> Optional[CoverArt]:
    """Locate the first embedded picture in any supported tag format."""
    pictures = getattr(audio_file, "pictures", None)
    if pictures:
        # FLAC picture blocks
        return CoverArt(pictures[0].data, pictures[0].mime or "image/jpeg")

    tags = getattr(audio_file, "tags", None)
    if tags is None:
        return None

    if hasattr(tags, "getall"):
        apic_frames = tags.getall("APIC")
        if apic_frames:
            return CoverArt(apic_frames[0].data, apic_frames[0].mime or "image/jpeg")
        return None

    try:
        covers = tags.get("covr")
    except (KeyError, ValueError):
        covers = None
    if covers:
        cover = covers[0]
        mime = (
            "image/png"
            if getattr(cover, "imageformat", None) == MP4Cover.FORMAT_PNG
            else "image/jpeg"
        )
        return CoverArt(bytes(cover), mime)

    try:
        blocks = tags.get("metadata_block_picture")
    except (KeyError, ValueError):
        blocks = None
    if blocks:
        picture = Picture(base64.b64decode(blocks[0]))
        return CoverArt(picture.data, picture.mime or "image/jpeg")

    return None


def _file_times(local_path: str, scanned_at: datetime) -> tuple[str, int]:
    """Return (mtime ISO string, file size), falling back to scan time and 0."""
    try:
        stat = os.stat(local_path)
    except OSError:
        return scanned_at.isoformat(), 0
    modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
    return modified.isoformat(), stat.st_size


def build_fallback_entry(
    local_path: str, scanned_at: datetime, id_strategy: str = "path"
) -> CatalogEntry:
    """Build a minimal entry from the filename when metadata can't be read."""
    path = Path(local_path)
    modified_at, file_size = _file_times(local_path, scanned_at)
    return CatalogEntry(
        id=make_entry_id(local_path, id_strategy),
        title=path.stem,
        file_path=local_path,
        file_name=path.name,
        format=path.suffix.lower().lstrip("."),
        file_size=file_size,
        added_at=scanned_at.isoformat(),
        modified_at=modified_at,
    )


def extract_catalog_entry(
    local_path: str,
    scanned_at: Optional[datetime] = None,
    id_strategy: str = "path",
) -> CatalogEntry:
    """Extract metadata from audio file using mutagen.

    Args:
        local_path: Absolute canonical file path
        scanned_at: Timestamp of the scan pass (default: now)
        id_strategy: "path" or "random", see make_entry_id

    Returns:
        A complete CatalogEntry; the fallback entry if the file can't be parsed
    """
    scanned_at = scanned_at or datetime.now(timezone.utc)

    try:
        audio_file = MutagenFile(local_path)
    except Exception as e:
        logger.warning(f"Could not read metadata from {local_path}: {e}")
        return build_fallback_entry(local_path, scanned_at, id_strategy)

    if audio_file is None:
        logger.debug(f"Unrecognized audio container, using filename: {local_path}")
        return build_fallback_entry(local_path, scanned_at, id_strategy)

    try:
        path = Path(local_path)
        title = get_tag_value(audio_file, TITLE_TAGS) or path.stem
        artists = get_tag_values(audio_file, ARTIST_TAGS)
        album = get_tag_value(audio_file, ALBUM_TAGS) or UNKNOWN_ALBUM
        genres = tuple(get_tag_values(audio_file, GENRE_TAGS)) or (UNKNOWN_GENRE,)

        year_values = get_tag_values(audio_file, DATE_TAGS)
        track_values = _get_raw_values(audio_file, TRACK_TAGS)
        disc_values = _get_raw_values(audio_file, DISC_TAGS)

        info = getattr(audio_file, "info", None)
        picture = _find_picture(audio_file)
        modified_at, file_size = _file_times(local_path, scanned_at)

        return CatalogEntry(
            id=make_entry_id(local_path, id_strategy),
            title=title,
            file_path=local_path,
            file_name=path.name,
            format=path.suffix.lower().lstrip("."),
            artist=", ".join(artists) if artists else UNKNOWN_ARTIST,
            album=album,
            genre=genres,
            duration_seconds=max(float(getattr(info, "length", 0) or 0), 0.0),
            year=parse_year(year_values[0]) if year_values else 0,
            track_number=parse_position(track_values[0]) if track_values else 0,
            disc_number=parse_position(disc_values[0]) if disc_values else 1,
            has_cover_art=picture is not None,
            cover_mime_type=picture.mime_type if picture else "",
            bitrate=int(getattr(info, "bitrate", 0) or 0),
            sample_rate=int(getattr(info, "sample_rate", 0) or 0),
            channel_count=int(getattr(info, "channels", 0) or 0),
            file_size=file_size,
            added_at=scanned_at.isoformat(),
            modified_at=modified_at,
        )

    except Exception as e:
        logger.warning(f"Could not read metadata from {local_path}: {e}")
        return build_fallback_entry(local_path, scanned_at, id_strategy)


def read_cover_art(entry: CatalogEntry) -> Optional[CoverArt]:
    """Read the cover image bytes for an entry on demand.

    Returns:
        CoverArt, or None when the entry has none or the file can't be read
    """
    if not entry.has_cover_art:
        return None

    try:
        audio_file = MutagenFile(entry.file_path)
        if audio_file is None:
            return None
        return _find_picture(audio_file)
    except Exception as e:
        logger.error(f"Failed to read cover art for {entry.id}: {e}")
        return None


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human readable string."""
    if seconds == 0:
        return "0:00"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    else:
        return f"{minutes}:{secs:02d}"


def format_size(bytes_size: int) -> str:
    """Format file size in bytes to human readable string."""
    for unit in ["B", "KB", "MB", "GB"]:
        if bytes_size < 1024:
            return f"{bytes_size:.1f} {unit}"
        bytes_size /= 1024
    return f"{bytes_size:.1f} TB"
