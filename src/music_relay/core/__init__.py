"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Logging setup (Loguru)
- Path security checks

Clean architecture principle: The core layer has no dependencies on
domain or web layers.
"""

from .config import (
    Config,
    MusicConfig,
    ServerConfig,
    ApiConfig,
    WebSocketConfig,
    UpstreamConfig,
    LoggingConfig,
    load_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    get_log_file_path,
    create_default_config,
    normalize_formats,
)
from .output import setup_loguru
from .path_security import is_path_within_library, validate_entry_path

__all__ = [
    "Config",
    "MusicConfig",
    "ServerConfig",
    "ApiConfig",
    "WebSocketConfig",
    "UpstreamConfig",
    "LoggingConfig",
    "load_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "get_log_file_path",
    "create_default_config",
    "normalize_formats",
    "setup_loguru",
    "is_path_within_library",
    "validate_entry_path",
]
