"""Player router for shared playback control."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from music_relay.context import AppContext
from music_relay.domain.playback.session import PlaybackErrorKind, PlaybackResult

from ..deps import get_context
from ..schemas import entry_payload

router = APIRouter()


def result_response(result: PlaybackResult) -> dict:
    """Map a playback result to a response body, raising on failure."""
    if result.error is PlaybackErrorKind.NOT_FOUND:
        raise HTTPException(404, result.message)
    if result.error is PlaybackErrorKind.INVALID_STATE:
        raise HTTPException(400, result.message)

    return {
        "success": True,
        "message": result.message,
        "music": entry_payload(result.entry),
        "status": result.state.status.value,
    }


async def _run(ctx: AppContext, action: str, entry_id: Optional[str] = None) -> dict:
    return result_response(await ctx.hub.run_playback_command(action, entry_id))


@router.post("/playback/play/{entry_id}")
async def play(entry_id: str, ctx: AppContext = Depends(get_context)):
    return await _run(ctx, "play", entry_id)


@router.post("/playback/pause")
async def pause(ctx: AppContext = Depends(get_context)):
    return await _run(ctx, "pause")


@router.post("/playback/resume")
async def resume(ctx: AppContext = Depends(get_context)):
    return await _run(ctx, "resume")


@router.post("/playback/stop")
async def stop(ctx: AppContext = Depends(get_context)):
    return await _run(ctx, "stop")


@router.get("/playback/status")
async def get_status(ctx: AppContext = Depends(get_context)):
    state = ctx.session.status()
    return {
        "success": True,
        "current": entry_payload(state.entry),
        "status": state.status.value,
    }
