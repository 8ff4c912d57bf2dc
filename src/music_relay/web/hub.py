import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from fastapi import WebSocket
from loguru import logger
from starlette.websockets import WebSocketState

from music_relay.domain.exceptions import MessageParseError
from music_relay.domain.library.index import LibraryFilters, LibraryIndex
from music_relay.domain.playback.session import PlaybackResult, PlaybackSession

from .schemas import (
    PlayCommand,
    SearchCommand,
    error_message,
    heartbeat_message,
    parse_message,
    playback_status_message,
    playback_update_message,
    pong_message,
    search_results_message,
    welcome_message,
    validate_command,
)

Reply = Callable[[dict[str, Any]], Awaitable[None]]


def is_connected(ws: WebSocket) -> bool:
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


@dataclass
class RealtimeClient:
    """A connected realtime client."""

    id: str
    websocket: WebSocket
    remote_address: str
    connected_at: float = field(default_factory=time.time)
    last_seen_at: float = field(default_factory=time.time)
    alive: bool = True


class RealtimeHub:
    """Manages realtime connections and broadcasts playback changes.

    Every playback mutation, whether it arrives over HTTP, a local websocket
    or the upstream peer, goes through run_playback_command so that all other
    clients hear about it exactly once.

    Liveness follows the transport. uvicorn sends protocol pings
    (ws_ping_interval) that clients answer automatically and closes sockets
    that stop answering, so a client that only listens stays alive as long as
    its socket is open. Each heartbeat tick marks clients whose
    socket has left the CONNECTED state as not alive and removes clients that
    were already not alive at the previous tick. Any inbound message marks a
    client alive again. A failed heartbeat send removes the client at once.
    """

    def __init__(
        self,
        session: PlaybackSession,
        index: LibraryIndex,
        heartbeat_interval: float = 30.0,
        send_timeout: float = 5.0,
        version: str = "",
    ):
        self.session = session
        self.index = index
        self.heartbeat_interval = heartbeat_interval
        self.send_timeout = send_timeout
        self.version = version
        self.clients: dict[str, RealtimeClient] = {}
        self._handlers: dict[str, Callable[[dict[str, Any], Reply, Optional[str]], Awaitable[None]]] = {
            "ping": self._handle_ping,
            "pong": self._handle_pong,
            "play": self._handle_play,
            "pause": self._handle_simple_command,
            "resume": self._handle_simple_command,
            "stop": self._handle_simple_command,
            "search": self._handle_search,
            "status": self._handle_status,
        }

    async def connect(self, ws: WebSocket) -> RealtimeClient:
        """Accept a connection, register it, and send welcome + current status."""
        await ws.accept()
        remote = f"{ws.client.host}:{ws.client.port}" if ws.client else "unknown"
        client = RealtimeClient(id=uuid.uuid4().hex, websocket=ws, remote_address=remote)
        self.clients[client.id] = client
        logger.info(f"Realtime client connected: {client.id} from {remote} ({len(self.clients)} total)")

        await self.send_to(client.id, welcome_message(client.id, self.version))
        await self.send_to(client.id, playback_status_message(self.session.status()))
        return client

    def disconnect(self, client_id: str) -> None:
        """Remove a client from the registry."""
        client = self.clients.pop(client_id, None)
        if client is not None:
            logger.info(f"Realtime client disconnected: {client_id} ({len(self.clients)} remaining)")

    async def handle_message(self, client_id: str, raw: Any) -> None:
        """Handle one inbound message from a registered client."""
        client = self.clients.get(client_id)
        if client is None:
            return
        client.alive = True
        client.last_seen_at = time.time()

        async def reply(message: dict[str, Any]) -> None:
            await self.send_to(client_id, message)

        await self.dispatch(raw, reply, origin=client_id)

    async def dispatch(self, raw: Any, reply: Reply, origin: Optional[str] = None) -> None:
        """Parse and route a message, answering through reply.

        Parse failures and unknown types are answered with an error message;
        they never close the connection.

        Args:
            raw: JSON text, bytes, or an already decoded dict
            reply: Coroutine sending a message back to the requester
            origin: Client id of the requester, excluded from broadcasts
        """
        try:
            data = parse_message(raw)
        except MessageParseError as e:
            logger.warning(f"Rejected realtime message: {e}")
            await reply(error_message(str(e), code="parse_error"))
            return

        msg_type = data["type"]
        handler = self._handlers.get(msg_type)
        if handler is None:
            await reply(error_message(f"Unknown message type: {msg_type}", code="unknown_type"))
            return

        try:
            await handler(data, reply, origin)
        except MessageParseError as e:
            logger.warning(f"Rejected realtime message: {e}")
            await reply(error_message(str(e), code="parse_error"))
        except Exception as e:
            logger.exception(f"Error handling '{msg_type}' message")
            await reply(error_message(f"Internal error: {e}", code="internal_error"))

    async def run_playback_command(
        self, action: str, entry_id: Optional[str] = None, origin: Optional[str] = None
    ) -> PlaybackResult:
        """Apply a playback transition and broadcast it to everyone but origin.

        Args:
            action: One of play, pause, resume, stop
            entry_id: Catalog id (play only)
            origin: Client id of the requester, or None for HTTP/upstream callers

        Returns:
            The session's PlaybackResult
        """
        if action == "play":
            result = self.session.play(entry_id or "")
        elif action == "pause":
            result = self.session.pause()
        elif action == "resume":
            result = self.session.resume()
        elif action == "stop":
            result = self.session.stop()
        else:
            raise ValueError(f"Unknown playback action: {action}")

        if result.ok:
            await self.broadcast(
                playback_update_message(result.state.entry, result.state.status.value),
                exclude=origin,
            )
        return result

    async def broadcast_status(self) -> None:
        """Send the current playback status to every client."""
        await self.broadcast(playback_status_message(self.session.status()))

    async def broadcast(self, message: dict[str, Any], exclude: Optional[str] = None) -> None:
        """Send a message to all clients except exclude.

        Sends run concurrently, each bounded by send_timeout, so one slow
        client cannot stall the others. Clients whose send fails are removed.
        """
        targets = [client for client in list(self.clients.values()) if client.id != exclude]
        if not targets:
            return

        results = await asyncio.gather(*(self._send(client, message) for client in targets))

        for client, delivered in zip(targets, results):
            if not delivered:
                await self._drop(client)

    async def send_to(self, client_id: str, message: dict[str, Any]) -> bool:
        """Send a message to one client, removing it on failure."""
        client = self.clients.get(client_id)
        if client is None:
            return False
        delivered = await self._send(client, message)
        if not delivered:
            await self._drop(client)
        return delivered

    async def heartbeat_tick(self) -> None:
        """Remove clients dead since the last tick, then send a heartbeat."""
        for client in list(self.clients.values()):
            if not client.alive:
                logger.info(f"Realtime client timed out: {client.id}")
                await self._drop(client)
                continue
            client.alive = is_connected(client.websocket)

        await self.broadcast(heartbeat_message())

    async def run_heartbeat(self) -> None:
        """Run heartbeat ticks forever (cancel to stop)."""
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await self.heartbeat_tick()
            except Exception:
                logger.exception("Heartbeat tick failed")

    async def close_all(self) -> None:
        for client in list(self.clients.values()):
            await self._drop(client, code=1001)

    def connection_stats(self) -> dict[str, Any]:
        now = time.time()
        return {
            "connectedClients": len(self.clients),
            "clients": [
                {
                    "id": client.id,
                    "remoteAddress": client.remote_address,
                    "connectedSeconds": round(now - client.connected_at, 1),
                    "lastSeenSeconds": round(now - client.last_seen_at, 1),
                }
                for client in self.clients.values()
            ],
        }

    async def _send(self, client: RealtimeClient, message: dict[str, Any]) -> bool:
        try:
            await asyncio.wait_for(client.websocket.send_json(message), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Send to realtime client {client.id} timed out")
            return False
        except Exception as e:
            logger.warning(f"Send to realtime client {client.id} failed: {e}")
            return False

    async def _drop(self, client: RealtimeClient, code: int = 1011) -> None:
        if self.clients.pop(client.id, None) is None:
            return
        logger.info(f"Removed realtime client {client.id} ({len(self.clients)} remaining)")
        try:
            await asyncio.wait_for(client.websocket.close(code=code), timeout=self.send_timeout)
        except Exception as e:
            logger.debug(f"Close for realtime client {client.id} failed: {e}")

    # Message handlers

    async def _handle_ping(self, data: dict[str, Any], reply: Reply, origin: Optional[str]) -> None:
        await reply(pong_message())

    async def _handle_pong(self, data: dict[str, Any], reply: Reply, origin: Optional[str]) -> None:
        # Liveness is already recorded in handle_message
        pass

    async def _handle_play(self, data: dict[str, Any], reply: Reply, origin: Optional[str]) -> None:
        command = validate_command(PlayCommand, data)
        await self._reply_with_result(
            await self.run_playback_command("play", command.id, origin), reply
        )

    async def _handle_simple_command(
        self, data: dict[str, Any], reply: Reply, origin: Optional[str]
    ) -> None:
        await self._reply_with_result(
            await self.run_playback_command(data["type"], origin=origin), reply
        )

    async def _handle_search(self, data: dict[str, Any], reply: Reply, origin: Optional[str]) -> None:
        command = validate_command(SearchCommand, data)
        try:
            filters = LibraryFilters.from_mapping(command.filters)
        except ValueError as e:
            raise MessageParseError(f"Malformed 'search' message: {e}") from e
        results = self.index.search(command.query, filters)
        await reply(search_results_message(command.query, filters.to_dict(), results))

    async def _handle_status(self, data: dict[str, Any], reply: Reply, origin: Optional[str]) -> None:
        await reply(playback_status_message(self.session.status()))

    async def _reply_with_result(self, result: PlaybackResult, reply: Reply) -> None:
        if not result.ok:
            await reply(error_message(result.message, code=result.error.value))
            return
        await reply(
            playback_update_message(
                result.entry,
                result.state.status.value,
                success=True,
                message=result.message,
            )
        )


