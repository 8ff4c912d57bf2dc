"""Tests for AppContext wiring and rescans."""

from unittest.mock import AsyncMock

import pytest

from music_relay.context import AppContext
from music_relay.core.config import Config
from music_relay.domain.exceptions import LibraryRootError
from music_relay.domain.playback.session import PlaybackStatus


@pytest.fixture
def config(tmp_path, write_wav):
    write_wav(tmp_path / "music" / "Alpha.wav")
    write_wav(tmp_path / "music" / "Beta.wav")
    config = Config()
    config.music.library_path = str(tmp_path / "music")
    return config


def test_create_wires_services(config):
    ctx = AppContext.create(config)
    assert ctx.session.index is ctx.index
    assert ctx.hub.session is ctx.session
    assert ctx.scanner.index is ctx.index
    assert ctx.upstream is None


def test_create_with_upstream(config):
    config.upstream.enabled = True
    config.upstream.websocket_url = "ws://peer/ws"
    ctx = AppContext.create(config)
    assert ctx.upstream is not None
    assert ctx.upstream.hub is ctx.hub


@pytest.mark.anyio
async def test_rescan_populates_index(config):
    ctx = AppContext.create(config)
    result = await ctx.rescan()
    assert result.status == "completed"
    assert len(ctx.index) == 2


@pytest.mark.anyio
async def test_rescan_missing_root_raises(config, tmp_path):
    config.music.library_path = str(tmp_path / "missing")
    ctx = AppContext.create(config)
    with pytest.raises(LibraryRootError):
        await ctx.rescan()


@pytest.mark.anyio
async def test_rescan_stops_playback_when_entry_removed(config, tmp_path):
    ctx = AppContext.create(config)
    await ctx.rescan()
    alpha = ctx.index.search("alpha")[0]
    ctx.session.play(alpha.id)

    ws = AsyncMock()
    ws.client = None
    await ctx.hub.connect(ws)
    ws.send_json.reset_mock()

    (tmp_path / "music" / "Alpha.wav").unlink()
    await ctx.rescan()

    assert ctx.session.status().status is PlaybackStatus.STOPPED
    ws.send_json.assert_called_once_with(
        {"type": "playback_status", "current": None, "status": "stopped"}
    )


@pytest.mark.anyio
async def test_unchanged_rescan_does_not_broadcast(config):
    ctx = AppContext.create(config)
    await ctx.rescan()
    ctx.session.play(ctx.index.search("beta")[0].id)

    ws = AsyncMock()
    ws.client = None
    await ctx.hub.connect(ws)
    ws.send_json.reset_mock()

    await ctx.rescan()

    ws.send_json.assert_not_called()
    assert ctx.session.status().status is PlaybackStatus.PLAYING
