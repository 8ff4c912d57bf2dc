"""
Byte-range delivery of catalog entries.

Pure request -> response mapping: the HTTP layer copies status, headers and
body straight onto the protocol response.
"""

import re
from pathlib import Path
from typing import Iterator, NamedTuple, Optional
from urllib.parse import quote

from loguru import logger

from music_relay.core.path_security import validate_entry_path
from music_relay.domain.library.index import LibraryIndex

DEFAULT_CHUNK_SIZE = 64 * 1024

_RANGE_RE = re.compile(r"^\s*bytes\s*=\s*(\d*)\s*-\s*(\d*)\s*$", re.IGNORECASE)


class ByteRange(NamedTuple):
    """Inclusive byte range."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1


class RangeNotSatisfiable(Exception):
    """The requested range lies outside the file."""

    pass


class StreamResponse(NamedTuple):
    status: int
    headers: dict[str, str]
    body: Optional[Iterator[bytes]] = None


def parse_range_header(header: Optional[str], file_size: int) -> Optional[ByteRange]:
    """Parse a single-range "bytes=start-end" header.

    The end is optional and defaults to the last byte. The suffix form
    "bytes=-N" selects the last N bytes.

    Returns:
        ByteRange, or None when the header is absent, malformed, or
        multi-range (the caller serves the full content)

    Raises:
        RangeNotSatisfiable: If start or end falls outside the file, or start > end
    """
    if not header:
        return None

    match = _RANGE_RE.match(header)
    if not match:
        return None

    start_str, end_str = match.groups()
    if not start_str and not end_str:
        return None

    if not start_str:
        suffix = int(end_str)
        if suffix == 0 or file_size == 0:
            raise RangeNotSatisfiable(header)
        return ByteRange(max(file_size - suffix, 0), file_size - 1)

    start = int(start_str)
    end = int(end_str) if end_str else file_size - 1
    if start >= file_size or end >= file_size or start > end:
        raise RangeNotSatisfiable(header)
    return ByteRange(start, end)


def iter_file_range(
    file_path: Path, start: int, end: int, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> Iterator[bytes]:
    """Yield bytes start..end (inclusive) of a file in chunks."""
    remaining = end - start + 1
    with open(file_path, "rb") as f:
        f.seek(start)
        while remaining > 0:
            chunk = f.read(min(chunk_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


def _not_found() -> StreamResponse:
    return StreamResponse(404, {})


def stream_entry(
    index: LibraryIndex,
    entry_id: str,
    range_header: Optional[str] = None,
    library_root: Optional[Path] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> StreamResponse:
    """Resolve an entry and describe the (partial) content response.

    Args:
        index: Library index used to resolve entry_id
        entry_id: Catalog id
        range_header: Raw Range header value, if any
        library_root: When set, files resolving outside it are refused with 403
        chunk_size: Read size for the body iterator

    Returns:
        StreamResponse with status 200, 206, 403, 404 or 416
    """
    entry = index.get_by_id(entry_id)
    if entry is None:
        return _not_found()

    file_path = Path(entry.file_path)
    if not file_path.is_file():
        logger.warning(f"Catalog entry {entry_id} missing on disk: {file_path}")
        return _not_found()

    if library_root is not None and validate_entry_path(file_path, library_root) is None:
        logger.warning(f"Blocked access outside library: {file_path}")
        return StreamResponse(403, {})

    try:
        file_size = file_path.stat().st_size
    except OSError:
        return _not_found()

    headers = {
        "Accept-Ranges": "bytes",
        "Content-Type": f"audio/{entry.format}",
        "Content-Disposition": f"inline; filename*=UTF-8''{quote(entry.file_name)}",
    }

    try:
        byte_range = parse_range_header(range_header, file_size)
    except RangeNotSatisfiable:
        return StreamResponse(416, {"Content-Range": f"bytes */{file_size}"})

    if byte_range is None:
        headers["Content-Length"] = str(file_size)
        return StreamResponse(
            200, headers, iter_file_range(file_path, 0, file_size - 1, chunk_size)
        )

    headers["Content-Range"] = f"bytes {byte_range.start}-{byte_range.end}/{file_size}"
    headers["Content-Length"] = str(byte_range.length)
    return StreamResponse(
        206,
        headers,
        iter_file_range(file_path, byte_range.start, byte_range.end, chunk_size),
    )
