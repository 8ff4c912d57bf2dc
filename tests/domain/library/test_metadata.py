"""
Tests for catalog entry extraction in metadata.py.
"""

from datetime import datetime, timezone

from music_relay.domain.library.metadata import (
    build_fallback_entry,
    extract_catalog_entry,
    format_duration,
    format_size,
    get_tag_value,
    get_tag_values,
    make_entry_id,
    parse_position,
    parse_year,
    read_cover_art,
)
from music_relay.domain.library.models import UNKNOWN_ALBUM, UNKNOWN_ARTIST, UNKNOWN_GENRE

SCANNED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeTextFrame:
    """Mimics an ID3 text frame."""

    def __init__(self, *text):
        self.text = list(text)


class TestMakeEntryId:
    def test_path_strategy_is_stable(self):
        assert make_entry_id("/music/a.mp3") == make_entry_id("/music/a.mp3")
        assert len(make_entry_id("/music/a.mp3")) == 16

    def test_path_strategy_distinguishes_paths(self):
        assert make_entry_id("/music/a.mp3") != make_entry_id("/music/b.mp3")

    def test_random_strategy_is_unique(self):
        assert make_entry_id("/music/a.mp3", "random") != make_entry_id("/music/a.mp3", "random")


class TestTagHelpers:
    def test_first_present_tag_wins(self):
        tags = {"TPE1": FakeTextFrame("ID3 Artist"), "artist": ["Vorbis Artist"]}
        assert get_tag_value(tags, ["TPE1", "artist"]) == "ID3 Artist"

    def test_falls_through_missing_tags(self):
        assert get_tag_value({"artist": ["Vorbis Artist"]}, ["TPE1", "artist"]) == "Vorbis Artist"

    def test_blank_values_skipped(self):
        assert get_tag_values({"genre": ["Rock", "  ", "Jazz"]}, ["genre"]) == ["Rock", "Jazz"]

    def test_missing_returns_none(self):
        assert get_tag_value({}, ["TIT2", "title"]) is None

    def test_parse_position(self):
        assert parse_position("3/12") == 3
        assert parse_position((4, 10)) == 4
        assert parse_position(7) == 7
        assert parse_position("side A") == 0

    def test_parse_year(self):
        assert parse_year("2004-05-01") == 2004
        assert parse_year("1999") == 1999
        assert parse_year("unknown") == 0


class TestExtractCatalogEntry:
    def test_wav_without_tags(self, tmp_path, write_wav):
        """Test an untagged WAV still yields a complete entry."""
        path = write_wav(tmp_path / "Quiet Song.wav", seconds=2.0, sample_rate=8000)

        entry = extract_catalog_entry(str(path), SCANNED_AT)

        assert entry.title == "Quiet Song"
        assert entry.file_name == "Quiet Song.wav"
        assert entry.format == "wav"
        assert entry.artist == UNKNOWN_ARTIST
        assert entry.album == UNKNOWN_ALBUM
        assert entry.genre == (UNKNOWN_GENRE,)
        assert abs(entry.duration_seconds - 2.0) < 0.01
        assert entry.sample_rate == 8000
        assert entry.channel_count == 1
        assert entry.file_size == path.stat().st_size
        assert entry.has_cover_art is False
        assert entry.added_at == SCANNED_AT.isoformat()
        assert entry.id == make_entry_id(str(path))

    def test_garbage_file_falls_back_to_filename(self, tmp_path):
        """Test unparseable files degrade to a filename-only entry."""
        path = tmp_path / "Broken Track.mp3"
        path.write_bytes(b"this is not audio" * 10)

        entry = extract_catalog_entry(str(path), SCANNED_AT)

        assert entry.title == "Broken Track"
        assert entry.format == "mp3"
        assert entry.artist == UNKNOWN_ARTIST
        assert entry.duration_seconds == 0.0
        assert entry.file_size == 170

    def test_missing_file_falls_back(self, tmp_path):
        entry = extract_catalog_entry(str(tmp_path / "gone.flac"), SCANNED_AT)
        assert entry.title == "gone"
        assert entry.file_size == 0
        assert entry.modified_at == SCANNED_AT.isoformat()


class TestFallbackEntry:
    def test_fields_complete(self, tmp_path):
        path = tmp_path / "Song.OGG"
        path.write_bytes(b"x")

        entry = build_fallback_entry(str(path), SCANNED_AT)

        assert entry.format == "ogg"
        assert entry.album == UNKNOWN_ALBUM
        assert entry.genre == (UNKNOWN_GENRE,)
        assert entry.file_size == 1


class TestReadCoverArt:
    def test_entry_without_cover(self, make_entry):
        assert read_cover_art(make_entry("No Cover")) is None

    def test_unreadable_file_returns_none(self, make_entry, tmp_path):
        path = tmp_path / "fake.mp3"
        path.write_bytes(b"junk")
        entry = make_entry("Fake", file_path=str(path), has_cover_art=True)
        assert read_cover_art(entry) is None


class TestFormatting:
    def test_format_duration(self):
        assert format_duration(0) == "0:00"
        assert format_duration(65) == "1:05"
        assert format_duration(3725) == "1:02:05"

    def test_format_size(self):
        assert format_size(512) == "512.0 B"
        assert format_size(2048) == "2.0 KB"
