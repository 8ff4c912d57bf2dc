"""Tests for the music-relay command line entry point."""

from unittest import mock

import pytest

from music_relay import cli
from music_relay.core.config import Config


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    for name in ["MUSIC_RELAY_LIBRARY_PATH", "MUSIC_RELAY_PORT", "LOG_LEVEL"]:
        monkeypatch.delenv(name, raising=False)
    # Keep loguru's global sinks untouched
    monkeypatch.setattr(cli, "setup_loguru", mock.Mock())


def write_config(tmp_path, library):
    path = tmp_path / "config.toml"
    path.write_text(f'[music]\nlibrary_path = "{library}"\n\n[logging]\nconsole_output = false\n')
    return path


class TestEnsureLibraryRoot:
    def test_creates_missing_directory(self, tmp_path):
        config = Config()
        config.music.library_path = str(tmp_path / "new" / "music")
        assert cli.ensure_library_root(config) is True
        assert (tmp_path / "new" / "music").is_dir()

    def test_fails_when_path_is_a_file(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        config = Config()
        config.music.library_path = str(blocker / "music")
        assert cli.ensure_library_root(config) is False


def test_uvicorn_log_level():
    assert cli.uvicorn_log_level("DEBUG") == "debug"
    assert cli.uvicorn_log_level("SUCCESS") == "info"


def test_scan_command(tmp_path, write_wav):
    library = tmp_path / "music"
    write_wav(library / "song.wav")
    config_path = write_config(tmp_path, library)

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--config", str(config_path), "scan"])

    assert exc_info.value.code == 0


def test_unusable_library_exits_1(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    config_path = write_config(tmp_path, blocker / "music")

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--config", str(config_path), "scan"])

    assert exc_info.value.code == 1


def test_invalid_config_exits_1(tmp_path):
    config_path = tmp_path / "config.toml"
    config_path.write_text("[server]\nport = 0\n")

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--config", str(config_path)])

    assert exc_info.value.code == 1


def test_wrongly_typed_config_exits_1(tmp_path):
    config_path = tmp_path / "config.toml"
    config_path.write_text('[server]\nport = "80"\n')

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--config", str(config_path)])

    assert exc_info.value.code == 1


def test_serve_passes_overrides_to_uvicorn(tmp_path):
    config_path = write_config(tmp_path, tmp_path / "music")

    with mock.patch("uvicorn.run") as run, pytest.raises(SystemExit) as exc_info:
        cli.main(["--config", str(config_path), "--port", "4321", "--host", "127.0.0.1"])

    assert exc_info.value.code == 0
    kwargs = run.call_args.kwargs
    assert kwargs["port"] == 4321
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["log_level"] == "info"
    assert kwargs["ws_ping_interval"] == 30.0
    assert kwargs["ws_ping_timeout"] == 30.0
