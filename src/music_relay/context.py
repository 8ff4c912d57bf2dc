"""Application context wiring the long-lived services together.

One AppContext exists per running server. The HTTP and realtime layers reach
the index, scanner, session and hub through it instead of module globals.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional

from loguru import logger

from music_relay.core.config import Config
from music_relay.domain.library.index import LibraryIndex
from music_relay.domain.library.scanner import LibraryScanner, ScanResult
from music_relay.domain.playback.session import PlaybackSession
from music_relay.web.hub import RealtimeHub
from music_relay.web.upstream import UpstreamConnector

VERSION = "1.0.0"


@dataclass
class AppContext:
    """Services shared by every request and connection.

    Attributes:
        config: Application configuration
        index: Current library snapshot and queries
        scanner: Builds snapshots and swaps them into the index
        session: Shared playback state
        hub: Realtime client registry and broadcaster
        upstream: Outbound peer connector (None when disabled)
    """

    config: Config
    index: LibraryIndex
    scanner: LibraryScanner
    session: PlaybackSession
    hub: RealtimeHub
    upstream: Optional[UpstreamConnector] = None
    started_at: float = field(default_factory=time.time)

    @classmethod
    def create(cls, config: Config) -> "AppContext":
        index = LibraryIndex(
            max_results=config.api.max_results,
            default_page_size=config.api.default_page_size,
        )
        session = PlaybackSession(index)
        hub = RealtimeHub(
            session,
            index,
            heartbeat_interval=config.websocket.heartbeat_interval_seconds,
            send_timeout=config.websocket.send_timeout_seconds,
            version=VERSION,
        )
        upstream = UpstreamConnector(config.upstream, hub) if config.upstream.enabled else None
        return cls(
            config=config,
            index=index,
            scanner=LibraryScanner(index, config.music),
            session=session,
            hub=hub,
            upstream=upstream,
        )

    async def rescan(self) -> ScanResult:
        """Rescan off the event loop, then re-resolve the playing entry.

        Clients get a fresh playback_status if the rescan changed (or removed)
        the entry that is playing.

        Raises:
            LibraryRootError: If the library root cannot be read
        """
        result = await asyncio.to_thread(self.scanner.rescan)
        if result.status == "completed" and self.session.reconcile():
            await self.hub.broadcast_status()
        return result

    async def run_periodic_scan(self) -> None:
        """Rescan every scan_interval_seconds (cancel to stop)."""
        interval = self.config.music.scan_interval_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                await self.rescan()
            except Exception:
                logger.exception("Periodic library scan failed")

    def uptime_seconds(self) -> float:
        return time.time() - self.started_at
