"""
Outbound connection to a designated upstream peer.

Messages from the peer go through the same dispatch path as local realtime
clients; replies go back to the peer. A dropped connection is retried with
linear backoff (interval x attempt) until max_reconnect_attempts is reached.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import websockets
from loguru import logger
from websockets.exceptions import WebSocketException

from music_relay.core.config import UpstreamConfig

from .hub import RealtimeHub


class UpstreamConnector:
    """Keeps one outbound websocket to the upstream peer alive."""

    def __init__(
        self,
        config: UpstreamConfig,
        hub: RealtimeHub,
        connect: Optional[Callable[[str], Any]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.hub = hub
        self._connect = connect or websockets.connect
        self._sleep = sleep
        self.reconnect_attempts = 0
        self.connected = False
        self.gave_up = False
        self._stopped = False

    def build_url(self) -> str:
        """Upstream URL with the auth token appended as a query parameter."""
        url = self.config.websocket_url
        if not self.config.token:
            return url
        parts = urlsplit(url)
        query = parse_qsl(parts.query, keep_blank_values=True)
        if any(key == "token" for key, _ in query):
            return url
        query.append(("token", self.config.token))
        return urlunsplit(parts._replace(query=urlencode(query)))

    def next_delay(self) -> Optional[float]:
        """Count a reconnect attempt and return its delay, or None to give up."""
        if self.reconnect_attempts >= self.config.max_reconnect_attempts:
            return None
        self.reconnect_attempts += 1
        return self.config.reconnect_interval_seconds * self.reconnect_attempts

    def stop(self) -> None:
        self._stopped = True

    async def run(self) -> None:
        """Connect and relay until stopped or out of reconnect attempts."""
        if not self.config.websocket_url:
            logger.warning("Upstream enabled but no websocket_url configured")
            return

        while not self._stopped:
            try:
                await self._run_session()
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.error(f"Upstream connection failed: {e}")
            finally:
                self.connected = False

            if self._stopped:
                break

            delay = self.next_delay()
            if delay is None:
                logger.error(
                    f"Giving up on upstream after {self.config.max_reconnect_attempts} reconnect attempts"
                )
                self.gave_up = True
                return

            logger.info(
                f"Reconnecting to upstream in {delay:.1f}s "
                f"(attempt {self.reconnect_attempts}/{self.config.max_reconnect_attempts})"
            )
            await self._sleep(delay)

    async def _run_session(self) -> None:
        # Never log the token
        logger.info(f"Connecting to upstream: {self.config.websocket_url}")
        async with self._connect(self.build_url()) as ws:
            self.connected = True
            self.reconnect_attempts = 0
            logger.info("Upstream connected")

            async def reply(message: dict[str, Any]) -> None:
                await ws.send(json.dumps(message))

            async for raw in ws:
                await self.hub.dispatch(raw, reply)

        logger.warning("Upstream connection closed")
