from fastapi import WebSocket, WebSocketDisconnect
from loguru import logger


async def realtime_websocket(websocket: WebSocket):
    """WebSocket endpoint for realtime playback control and search.

    Registered by the app factory at the configured websocket path. Text and
    binary frames are both accepted; the hub answers anything it cannot parse
    with an error message.
    """
    hub = websocket.app.state.context.hub
    client = await hub.connect(websocket)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            payload = message.get("text")
            if payload is None:
                payload = message.get("bytes", b"")
            await hub.handle_message(client.id, payload)
    except WebSocketDisconnect:
        logger.debug(f"Realtime client closed the connection: {client.id}")
    except RuntimeError as e:
        # Socket already closed by the hub (failed send or dropped transport)
        logger.debug(f"Realtime connection ended for {client.id}: {e}")
    finally:
        hub.disconnect(client.id)
