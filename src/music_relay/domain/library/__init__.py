"""Library domain - music file scanning, metadata and catalog queries.

This domain handles:
- Catalog entry and snapshot models
- Metadata extraction from audio files
- Library scanning with single-flight rescans
- Search, filtering, pagination and facets over the current snapshot
"""

# Models
from .models import (
    CatalogEntry,
    LibrarySnapshot,
    UNKNOWN_ALBUM,
    UNKNOWN_ARTIST,
    UNKNOWN_GENRE,
)

# Metadata extraction
from .metadata import (
    CoverArt,
    build_fallback_entry,
    extract_catalog_entry,
    format_duration,
    format_size,
    get_tag_value,
    get_tag_values,
    make_entry_id,
    read_cover_art,
)

# Index
from .index import LibraryFilters, LibraryIndex, Page

# Scanning
from .scanner import (
    LibraryScanner,
    ScanResult,
    is_supported_format,
    iter_audio_files,
    scan_directory,
)

__all__ = [
    # Models
    "CatalogEntry",
    "LibrarySnapshot",
    "UNKNOWN_ALBUM",
    "UNKNOWN_ARTIST",
    "UNKNOWN_GENRE",
    # Metadata
    "CoverArt",
    "build_fallback_entry",
    "extract_catalog_entry",
    "format_duration",
    "format_size",
    "get_tag_value",
    "get_tag_values",
    "make_entry_id",
    "read_cover_art",
    # Index
    "LibraryFilters",
    "LibraryIndex",
    "Page",
    # Scanner
    "LibraryScanner",
    "ScanResult",
    "is_supported_format",
    "iter_audio_files",
    "scan_directory",
]
