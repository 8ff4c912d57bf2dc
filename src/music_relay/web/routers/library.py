"""Library router: search, listing, facets, cover art and streaming."""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response, StreamingResponse
from loguru import logger

from music_relay.context import AppContext
from music_relay.domain.exceptions import LibraryRootError
from music_relay.domain.library.index import LibraryFilters
from music_relay.domain.library.metadata import read_cover_art
from music_relay.domain.streaming import stream_entry

from ..deps import get_context
from ..schemas import entry_payload

router = APIRouter()


def build_filters(
    artist: Optional[str] = None,
    album: Optional[str] = None,
    genre: Optional[str] = None,
    format: Optional[str] = None,
    min_duration: Optional[float] = Query(None, alias="minDuration"),
    max_duration: Optional[float] = Query(None, alias="maxDuration"),
) -> LibraryFilters:
    """FastAPI dependency turning query parameters into LibraryFilters."""
    return LibraryFilters.from_mapping(
        {
            "artist": artist,
            "album": album,
            "genre": genre,
            "format": format,
            "min_duration": min_duration,
            "max_duration": max_duration,
        }
    )


@router.get("/music/search")
async def search_music(
    query: str = "",
    filters: LibraryFilters = Depends(build_filters),
    ctx: AppContext = Depends(get_context),
):
    results = ctx.index.search(query, filters)
    return {
        "success": True,
        "query": query,
        "filters": filters.to_dict(),
        "results": [entry_payload(entry) for entry in results],
        "total": len(results),
    }


@router.get("/music/list")
async def list_music(
    page: int = 1,
    page_size: Optional[int] = Query(None, alias="pageSize"),
    filters: LibraryFilters = Depends(build_filters),
    ctx: AppContext = Depends(get_context),
):
    result = ctx.index.list(filters, page=page, page_size=page_size)
    return {
        "success": True,
        "filters": filters.to_dict(),
        "pagination": {
            "page": result.page,
            "pageSize": result.page_size,
            "total": result.total,
            "totalPages": result.total_pages,
        },
        "items": [entry_payload(entry) for entry in result.items],
    }


@router.post("/music/scan")
async def scan_library(ctx: AppContext = Depends(get_context)):
    """Trigger a rescan. Returns "queued" when one is already running."""
    try:
        result = await ctx.rescan()
    except LibraryRootError as e:
        raise HTTPException(500, str(e))

    return {
        "success": True,
        "status": result.status,
        "total": result.entry_count,
        "durationSeconds": round(result.duration_seconds, 3),
    }


@router.get("/music/{entry_id}")
async def get_music(entry_id: str, ctx: AppContext = Depends(get_context)):
    entry = ctx.index.get_by_id(entry_id)
    if entry is None:
        raise HTTPException(404, "Music not found")
    return {"success": True, "music": entry_payload(entry)}


@router.get("/artists")
async def get_artists(ctx: AppContext = Depends(get_context)):
    artists = ctx.index.distinct_artists()
    return {"success": True, "artists": artists, "total": len(artists)}


@router.get("/albums")
async def get_albums(artist: Optional[str] = None, ctx: AppContext = Depends(get_context)):
    albums = ctx.index.distinct_albums(artist)
    return {"success": True, "artist": artist, "albums": albums, "total": len(albums)}


@router.get("/genres")
async def get_genres(ctx: AppContext = Depends(get_context)):
    genres = ctx.index.distinct_genres()
    return {"success": True, "genres": genres, "total": len(genres)}


@router.get("/stats")
async def get_stats(ctx: AppContext = Depends(get_context)):
    return {"success": True, "stats": ctx.index.stats()}


@router.get("/cover/{entry_id}")
async def get_cover(entry_id: str, ctx: AppContext = Depends(get_context)):
    entry = ctx.index.get_by_id(entry_id)
    if entry is None:
        raise HTTPException(404, "Music not found")

    cover = await asyncio.to_thread(read_cover_art, entry)
    if cover is None:
        raise HTTPException(404, "Cover art not found")

    return Response(
        content=cover.data,
        media_type=cover.mime_type,
        headers={"Cache-Control": "public, max-age=86400"},
    )


@router.get("/stream/{entry_id}")
async def stream_music(entry_id: str, request: Request, ctx: AppContext = Depends(get_context)):
    response = await asyncio.to_thread(
        stream_entry,
        ctx.index,
        entry_id,
        request.headers.get("range"),
        ctx.scanner.root,
    )

    if response.status == 404:
        raise HTTPException(404, "Audio file not found")
    if response.status == 403:
        raise HTTPException(403, "Access denied")
    if response.status == 416:
        return Response(status_code=416, headers=response.headers)

    logger.debug(f"Streaming {entry_id} ({response.status}, {response.headers.get('Content-Range', 'full')})")
    return StreamingResponse(response.body, status_code=response.status, headers=response.headers)
