"""
Music Relay CLI - Entry point

Starts the HTTP/WebSocket server, or runs a one-off library scan.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.console import Console
from rich.table import Table

from music_relay.core.config import Config, get_log_file_path, load_config
from music_relay.core.output import setup_loguru

console = Console()


def ensure_library_root(config: Config) -> bool:
    """Create the library directory if it does not exist yet.

    Returns:
        True if the directory exists (or was created)
    """
    root = Path(config.music.library_path).expanduser()
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Cannot create music library directory {root}: {e}")
        console.print(f"[red]Cannot create music library directory {root}: {e}[/red]")
        return False
    return True


def run_scan(config: Config) -> int:
    """Scan once and print library statistics.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    from music_relay.domain.exceptions import LibraryRootError
    from music_relay.domain.library.index import LibraryIndex
    from music_relay.domain.library.scanner import LibraryScanner

    index = LibraryIndex(config.api.max_results, config.api.default_page_size)
    scanner = LibraryScanner(index, config.music)

    with console.status(f"Scanning {scanner.root}..."):
        try:
            result = scanner.rescan()
        except LibraryRootError as e:
            console.print(f"[red]{e}[/red]")
            return 1

    stats = index.stats()
    table = Table(title="Music Library", show_header=False)
    table.add_row("Entries", str(stats["total_entries"]))
    table.add_row("Artists", str(stats["artists"]))
    table.add_row("Albums", str(stats["albums"]))
    table.add_row("Genres", str(stats["genres"]))
    table.add_row("Total duration", stats["total_duration_str"])
    table.add_row("Total size", stats["total_size_str"])
    table.add_row("With cover art", str(stats["entries_with_cover_art"]))
    for fmt, count in sorted(stats["formats"].items()):
        table.add_row(f"  {fmt}", str(count))
    console.print(table)
    console.print(f"[dim]Scanned in {result.duration_seconds:.2f}s[/dim]")
    return 0


def uvicorn_log_level(level: str) -> str:
    # uvicorn has no SUCCESS level
    level = level.lower()
    return "info" if level == "success" else level


def run_server(config: Config) -> int:
    import uvicorn

    from music_relay.web.main import create_app

    app = create_app(config)
    console.print(
        f"[green]Music Relay[/green] listening on http://{config.server.host}:{config.server.port}"
        f"  (library: {config.music.library_path})"
    )
    if config.websocket.enabled:
        console.print(f"[dim]WebSocket: ws://{config.server.host}:{config.server.port}{config.websocket.path}[/dim]")

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=uvicorn_log_level(config.logging.level),
        ws_ping_interval=config.websocket.heartbeat_interval_seconds,
        ws_ping_timeout=config.websocket.heartbeat_interval_seconds,
    )
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the music-relay command."""
    parser = argparse.ArgumentParser(
        description="Music Relay - shared music library and playback server",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('--config', type=Path, help='Path to config.toml')
    parser.add_argument('--library', help='Music library directory (overrides config)')
    parser.add_argument('--host', help='Bind address (overrides config)')
    parser.add_argument('--port', type=int, help='Port (overrides config)')

    subparsers = parser.add_subparsers(dest='subcommand', help='Available commands')
    subparsers.add_parser('serve', help='Run the server (default)')
    subparsers.add_parser('scan', help='Scan the library once and print statistics')

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ValueError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)

    if args.library:
        config.music.library_path = str(Path(args.library).expanduser())
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port

    setup_loguru(
        get_log_file_path(config),
        level=config.logging.level.upper(),
        console_output=config.logging.console_output,
    )

    if not ensure_library_root(config):
        sys.exit(1)

    if args.subcommand == 'scan':
        sys.exit(run_scan(config))

    sys.exit(run_server(config))


if __name__ == "__main__":
    main()
