import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from music_relay.context import VERSION, AppContext
from music_relay.core.config import Config, load_config
from music_relay.domain.exceptions import LibraryRootError

from .routers import library, live, player
from .schemas import utc_timestamp


def create_app(config: Optional[Config] = None, start_background_tasks: bool = True) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Loaded configuration (defaults to load_config())
        start_background_tasks: Run the initial scan, periodic rescans,
            heartbeat and upstream connector during the app lifespan

    Returns:
        Configured FastAPI app with the AppContext on app.state.context
    """
    config = config or load_config()
    ctx = AppContext.create(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        tasks: list[asyncio.Task] = []
        if start_background_tasks:
            try:
                result = await ctx.rescan()
                logger.info(f"Initial scan indexed {result.entry_count} files")
            except LibraryRootError as e:
                # Serve an empty catalog until a later scan succeeds
                logger.error(f"Initial scan failed: {e}")

            if config.music.scan_interval_seconds > 0:
                tasks.append(asyncio.create_task(ctx.run_periodic_scan()))
            if config.websocket.enabled:
                tasks.append(asyncio.create_task(ctx.hub.run_heartbeat()))
            if ctx.upstream is not None:
                tasks.append(asyncio.create_task(ctx.upstream.run()))

        logger.info(f"Music Relay {VERSION} ready")
        yield

        if ctx.upstream is not None:
            ctx.upstream.stop()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await ctx.hub.close_all()
        logger.info("Music Relay stopped")

    app = FastAPI(title="Music Relay API", version=VERSION, lifespan=lifespan)
    app.state.context = ctx

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.allowed_origins,
        allow_credentials="*" not in config.api.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    prefix = config.api.prefix
    app.include_router(library.router, prefix=prefix, tags=["library"])
    app.include_router(player.router, prefix=prefix, tags=["player"])
    if config.websocket.enabled:
        app.add_api_websocket_route(config.websocket.path, live.realtime_websocket)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "timestamp": utc_timestamp(),
            "version": VERSION,
            "uptimeSeconds": round(ctx.uptime_seconds(), 1),
            "musicCount": len(ctx.index),
            "connectedClients": len(ctx.hub.clients),
        }

    @app.get(f"{prefix}/info")
    async def server_info():
        return {
            "success": True,
            "name": "Music Relay",
            "version": VERSION,
            "musicCount": len(ctx.index),
            "uptimeSeconds": round(ctx.uptime_seconds(), 1),
            "scanning": ctx.scanner.is_scanning,
            "libraryPath": str(ctx.scanner.root),
            "supportedFormats": config.music.supported_formats,
            "websocket": {
                "enabled": config.websocket.enabled,
                "path": config.websocket.path,
                **ctx.hub.connection_stats(),
            },
            "upstream": {
                "enabled": ctx.upstream is not None,
                "connected": ctx.upstream.connected if ctx.upstream else False,
            },
            "stats": ctx.index.stats(),
        }

    return app
