"""
Music library scanning.

Handles walking the library directory for supported audio files, extracting
metadata into a fresh snapshot, and installing it into the library index with
at most one scan running at a time.
"""

import os
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Literal, NamedTuple

from loguru import logger

from music_relay.core.config import MusicConfig
from music_relay.core.path_security import is_path_within_library
from music_relay.domain.exceptions import LibraryRootError

from .index import LibraryIndex
from .metadata import extract_catalog_entry
from .models import CatalogEntry, LibrarySnapshot


class ScanResult(NamedTuple):
    """Outcome of a rescan request.

    status is "completed" when this call ran the scan, or "queued" when a scan
    was already in flight and this request was folded into its follow-up pass.
    entry_count is the size of the snapshot installed (or current, if queued).
    """

    status: Literal["completed", "queued"]
    entry_count: int
    duration_seconds: float = 0.0


def is_supported_format(file_name: str, supported_formats: list[str]) -> bool:
    """Check if file format is supported (case-insensitive, no dot)."""
    return Path(file_name).suffix.lower().lstrip(".") in supported_formats


def iter_audio_files(root: Path, supported_formats: list[str]) -> Iterator[Path]:
    """Depth-first walk yielding supported audio files under root.

    Directory symlinks are not followed. Unreadable subdirectories are logged
    and skipped.

    Raises:
        LibraryRootError: If root itself is missing or unreadable
    """
    try:
        root_entries = list(os.scandir(root))
    except OSError as e:
        raise LibraryRootError(str(root), e.strerror or str(e)) from e

    def walk(entries: list[os.DirEntry]) -> Iterator[Path]:
        for item in entries:
            try:
                if item.is_dir(follow_symlinks=False):
                    try:
                        children = list(os.scandir(item.path))
                    except OSError as e:
                        logger.warning(f"Skipping unreadable directory {item.path}: {e}")
                        continue
                    yield from walk(children)
                elif item.is_file() and is_supported_format(item.name, supported_formats):
                    yield Path(item.path)
            except OSError as e:
                logger.warning(f"Skipping {item.path}: {e}")

    yield from walk(root_entries)


def scan_directory(root: Path, config: MusicConfig) -> LibrarySnapshot:
    """Scan a directory for music files and build a complete snapshot.

    Args:
        root: Library root directory
        config: Music configuration (formats, id strategy)

    Returns:
        New LibrarySnapshot; entry order follows the walk and is not stable

    Raises:
        LibraryRootError: If the root path is inaccessible
    """
    scanned_at = datetime.now(timezone.utc)
    entries: list[CatalogEntry] = []
    seen_paths: set[str] = set()

    for file_path in iter_audio_files(root, config.supported_formats):
        canonical = file_path.resolve()
        if not is_path_within_library(canonical, root):
            logger.debug(f"Skipping file linked outside library: {file_path}")
            continue

        canonical_str = str(canonical)
        if canonical_str in seen_paths:
            continue
        seen_paths.add(canonical_str)

        entries.append(
            extract_catalog_entry(
                canonical_str, scanned_at=scanned_at, id_strategy=config.id_strategy
            )
        )

    return LibrarySnapshot.build(entries, root=str(root), scanned_at=scanned_at)


class LibraryScanner:
    """Runs scans and installs their snapshots into a LibraryIndex.

    At most one scan runs at a time. A rescan requested while one is in flight
    is queued and deduplicated: it returns immediately, and the running scan
    performs exactly one extra pass when it finishes.
    """

    def __init__(self, index: LibraryIndex, config: MusicConfig):
        self.index = index
        self.config = config
        self._state_lock = threading.Lock()
        self._running = False
        self._pending = False

    @property
    def root(self) -> Path:
        return Path(self.config.library_path).expanduser().resolve()

    @property
    def is_scanning(self) -> bool:
        with self._state_lock:
            return self._running

    def rescan(self) -> ScanResult:
        """Scan the library and atomically replace the index snapshot.

        Blocking; run it in a worker thread from async code.

        Raises:
            LibraryRootError: If the library root is inaccessible
        """
        with self._state_lock:
            if self._running:
                self._pending = True
                logger.info("Scan already in progress, queued a follow-up pass")
                return ScanResult("queued", len(self.index))
            self._running = True

        started = time.monotonic()
        try:
            while True:
                root = self.root
                logger.info(f"Scanning music library: {root}")
                snapshot = scan_directory(root, self.config)
                self.index.replace(snapshot)
                logger.info(f"Library scan complete: {len(snapshot)} entries found")

                with self._state_lock:
                    if not self._pending:
                        self._running = False
                        break
                    self._pending = False
                logger.info("Running queued follow-up scan")
        except Exception:
            with self._state_lock:
                self._running = False
                self._pending = False
            logger.exception("Library scan failed")
            raise

        return ScanResult("completed", len(snapshot), time.monotonic() - started)
