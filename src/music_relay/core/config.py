"""
Configuration management for Music Relay
"""

import os
import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, List, Optional

from loguru import logger

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
VALID_ID_STRATEGIES = {"path", "random"}


@dataclass
class MusicConfig:
    """Configuration for music library settings."""

    library_path: str = field(default_factory=lambda: str(Path.home() / "Music"))
    supported_formats: List[str] = field(
        default_factory=lambda: ["mp3", "wav", "flac", "m4a", "aac", "ogg"]
    )
    scan_interval_seconds: float = 3600.0  # 0 disables periodic rescans
    id_strategy: str = "path"  # 'path' (stable across rescans) or 'random'

    def __post_init__(self) -> None:
        self.supported_formats = normalize_formats(self.supported_formats)


@dataclass
class ServerConfig:
    """Configuration for the HTTP listener."""

    host: str = "0.0.0.0"
    port: int = 3000


@dataclass
class ApiConfig:
    """Configuration for the REST API."""

    prefix: str = "/api"
    max_results: int = 100  # Cap for search/filter results (list paginates instead)
    default_page_size: int = 50
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class WebSocketConfig:
    """Configuration for realtime client connections."""

    enabled: bool = True
    path: str = "/ws"
    heartbeat_interval_seconds: float = 30.0
    send_timeout_seconds: float = 5.0


@dataclass
class UpstreamConfig:
    """Configuration for the designated upstream WebSocket peer."""

    enabled: bool = False
    websocket_url: str = ""
    token: str = ""
    reconnect_interval_seconds: float = 5.0
    max_reconnect_attempts: int = 5


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/music-relay/music-relay.log)
    )
    console_output: bool = True


@dataclass
class Config:
    """Main configuration object."""

    music: MusicConfig = field(default_factory=MusicConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    websocket: WebSocketConfig = field(default_factory=WebSocketConfig)
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """Validate configuration values.

        Invalid log levels are not fatal: they fall back to INFO.

        Raises:
            ValueError: If configuration values are invalid
        """
        if not 1 <= self.server.port <= 65535:
            raise ValueError(f"Invalid server port: {self.server.port}")

        if not self.music.library_path:
            raise ValueError("music.library_path is not configured")

        if not self.music.supported_formats:
            raise ValueError("music.supported_formats must not be empty")

        if self.music.id_strategy not in VALID_ID_STRATEGIES:
            raise ValueError(
                f"Invalid id strategy: {self.music.id_strategy!r}. "
                f"Valid strategies are: {sorted(VALID_ID_STRATEGIES)}"
            )

        if self.music.scan_interval_seconds < 0:
            raise ValueError("music.scan_interval_seconds must be >= 0")

        if self.api.max_results < 1 or self.api.default_page_size < 1:
            raise ValueError("api.max_results and api.default_page_size must be >= 1")

        if self.websocket.heartbeat_interval_seconds <= 0:
            raise ValueError("websocket.heartbeat_interval_seconds must be > 0")

        if self.upstream.enabled and not self.upstream.websocket_url:
            raise ValueError("upstream.websocket_url is required when upstream is enabled")

        if self.upstream.max_reconnect_attempts < 0:
            raise ValueError("upstream.max_reconnect_attempts must be >= 0")

        if self.logging.level.upper() not in VALID_LOG_LEVELS:
            logger.warning(f"Invalid log level {self.logging.level!r}, using INFO")
            self.logging.level = "INFO"


def normalize_formats(formats: List[str]) -> List[str]:
    """Lower-case formats and strip any leading dot ('.MP3' -> 'mp3')."""
    normalized = []
    for fmt in formats:
        fmt = str(fmt).strip().lower().lstrip(".")
        if fmt and fmt not in normalized:
            normalized.append(fmt)
    return normalized


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "music-relay"
    return Path.home() / ".config" / "music-relay"


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Current working directory
    2. XDG_CONFIG_HOME/music-relay (or ~/.config/music-relay)
    """
    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "music-relay"
    return Path.home() / ".local" / "share" / "music-relay"


def get_log_file_path(config: Config) -> Path:
    """Get the log file path, honoring logging.log_file when set."""
    if config.logging.log_file:
        return Path(config.logging.log_file).expanduser()
    return get_data_dir() / "music-relay.log"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Music Relay Configuration

[music]
# Directory that is scanned (recursively) for audio files
library_path = "~/Music"

# Supported audio file extensions (without dot)
supported_formats = ["mp3", "wav", "flac", "m4a", "aac", "ogg"]

# Seconds between periodic rescans (0 disables)
scan_interval_seconds = 3600

# Catalog id strategy: "path" (stable across rescans) or "random"
id_strategy = "path"

[server]
host = "0.0.0.0"
port = 3000

[api]
prefix = "/api"

# Maximum number of search/filter results (list endpoints paginate instead)
max_results = 100
default_page_size = 50

[websocket]
enabled = true
path = "/ws"
heartbeat_interval_seconds = 30

[upstream]
# Dial out to one designated WebSocket peer
enabled = false
websocket_url = ""
reconnect_interval_seconds = 5
max_reconnect_attempts = 5

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/music-relay/music-relay.log)
# log_file = "/path/to/custom/music-relay.log"

# Also output logs to console
console_output = true
""".strip()


def _check_type(name: str, key: str, default: Any, value: Any) -> None:
    """Raise ValueError when a TOML value does not match the default's type."""
    if default is None:
        if value is not None and not isinstance(value, str):
            raise ValueError(f"[{name}] {key} must be a string")
        return

    if isinstance(default, bool):
        ok = isinstance(value, bool)
        expected = "a boolean"
    elif isinstance(default, int):
        ok = isinstance(value, int) and not isinstance(value, bool)
        expected = "an integer"
    elif isinstance(default, float):
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        expected = "a number"
    elif isinstance(default, list):
        ok = isinstance(value, list)
        expected = "a list"
    else:
        ok = isinstance(value, str)
        expected = "a string"

    if not ok:
        raise ValueError(f"[{name}] {key} must be {expected}, got {value!r}")


def _load_section(section: Any, data: dict[str, Any], name: str) -> Any:
    """Overlay TOML values onto a section dataclass, ignoring unknown keys.

    Raises:
        ValueError: If a known key has a value of the wrong type
    """
    known = {f.name for f in fields(section)}
    unknown = set(data) - known
    if unknown:
        logger.warning(f"Ignoring unknown keys in [{name}]: {sorted(unknown)}")

    values = {k: v for k, v in data.items() if k in known}
    for key, value in values.items():
        _check_type(name, key, getattr(section, key), value)
    return replace(section, **values)


def _apply_env_overrides(config: Config) -> None:
    """Environment variables override TOML values."""
    library_path = os.environ.get("MUSIC_RELAY_LIBRARY_PATH")
    if library_path:
        config.music.library_path = library_path

    port = os.environ.get("MUSIC_RELAY_PORT")
    if port:
        try:
            config.server.port = int(port)
        except ValueError:
            logger.warning(f"Ignoring non-numeric MUSIC_RELAY_PORT: {port!r}")

    token = os.environ.get("UPSTREAM_TOKEN")
    if token:
        config.upstream.token = token

    level = os.environ.get("LOG_LEVEL")
    if level:
        config.logging.level = level

    origins = os.environ.get("ALLOWED_ORIGINS")
    if origins:
        config.api.allowed_origins = [o.strip() for o in origins.split(",") if o.strip()]


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - MUSIC_RELAY_LIBRARY_PATH
    - MUSIC_RELAY_PORT
    - UPSTREAM_TOKEN
    - LOG_LEVEL
    - ALLOWED_ORIGINS

    Args:
        config_path: Explicit config file (default: see get_config_path)

    Returns:
        Validated Config

    Raises:
        ValueError: If the file is not valid TOML or values are invalid
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = config_path or get_config_path()
    config = Config()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_default_config())
        logger.info(f"Created default configuration at: {config_path}")
    else:
        try:
            with open(config_path, "rb") as f:
                toml_data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {config_path}: {e}") from e

        for name in ("music", "server", "api", "websocket", "upstream", "logging"):
            if name in toml_data:
                if not isinstance(toml_data[name], dict):
                    raise ValueError(f"[{name}] must be a table")
                section = _load_section(getattr(config, name), toml_data[name], name)
                setattr(config, name, section)

    _apply_env_overrides(config)
    config.music.library_path = str(Path(config.music.library_path).expanduser())
    config.music.supported_formats = normalize_formats(config.music.supported_formats)
    config.validate()
    return config
