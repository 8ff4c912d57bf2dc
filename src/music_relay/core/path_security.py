"""
Path security validation utilities for Music Relay.

Provides pure functions to validate file paths are within the library directory,
preventing directory traversal attacks and symlink escapes.
"""

from pathlib import Path
from typing import Optional


def is_path_within_library(file_path: Path, library_path: Path) -> bool:
    """Pure function - validates path is within the library root.

    Uses Path.resolve() to handle symlinks and relative paths, then checks if the
    resolved path is a child of the library root directory.

    Args:
        file_path: The file path to validate
        library_path: Allowed library root

    Returns:
        True if path is within library boundaries, False otherwise
    """
    try:
        resolved_path = file_path.resolve()
        resolved_path.relative_to(Path(library_path).resolve())
        return True
    except ValueError:
        # relative_to raises ValueError if path is not a subpath
        return False
    except (OSError, RuntimeError):
        # Path.resolve() can raise OSError for invalid paths or RuntimeError for recursion
        return False


def validate_entry_path(file_path: Path, library_path: Path) -> Optional[Path]:
    """Pure function - returns validated path or None.

    Combines existence check with library boundary validation.

    Args:
        file_path: The file path to validate
        library_path: Allowed library root

    Returns:
        The validated Path object if valid, None otherwise
    """
    if not file_path.is_file():
        return None

    if not is_path_within_library(file_path, library_path):
        return None

    return file_path
