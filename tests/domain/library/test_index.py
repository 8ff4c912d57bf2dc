"""Tests for catalog search, filtering, pagination and facets."""

import pytest

from music_relay.domain.library.index import LibraryFilters, LibraryIndex
from music_relay.domain.library.models import LibrarySnapshot


def titles(entries):
    return [entry.title for entry in entries]


class TestSearch:
    def test_empty_query_returns_snapshot_in_order(self, index, sample_entries):
        assert index.search("") == sample_entries

    def test_matches_title_artist_album_and_genre(self, index):
        assert titles(index.search("karma")) == ["Karma Police"]
        assert titles(index.search("MASSIVE")) == ["Teardrop"]
        assert titles(index.search("ok comp")) == ["Paranoid Android", "Karma Police"]
        assert titles(index.search("trip hop")) == ["Teardrop"]

    def test_no_match(self, index):
        assert index.search("nothing like this") == []

    def test_query_combined_with_filters(self, index):
        results = index.search("radiohead", LibraryFilters(min_duration=300))
        assert titles(results) == ["Paranoid Android"]

    def test_results_capped(self, make_entry):
        idx = LibraryIndex(max_results=3)
        idx.replace(LibrarySnapshot.build([make_entry(f"Song {i}") for i in range(10)]))
        assert len(idx.search("")) == 3
        assert len(idx.filter(LibraryFilters())) == 3


class TestFilters:
    def test_artist_substring_case_insensitive(self, index):
        assert titles(index.filter(LibraryFilters(artist="radio"))) == [
            "Paranoid Android",
            "Karma Police",
        ]

    def test_genre_matches_any_element(self, index):
        assert titles(index.filter(LibraryFilters(genre="rock"))) == ["Paranoid Android"]

    def test_format_exact(self, index):
        assert titles(index.filter(LibraryFilters(format="FLAC"))) == ["Teardrop"]
        assert index.filter(LibraryFilters(format="fla")) == []

    def test_duration_bounds_inclusive(self, index):
        results = index.filter(LibraryFilters(min_duration=330, max_duration=367))
        assert titles(results) == ["Teardrop", "Windowlicker"]

    def test_filters_combine_with_and(self, index):
        assert index.filter(LibraryFilters(artist="Radiohead", album="Mezzanine")) == []

    def test_from_mapping_accepts_camel_and_snake_case(self):
        filters = LibraryFilters.from_mapping({"minDuration": "120", "max_duration": 300, "artist": ""})
        assert filters == LibraryFilters(min_duration=120.0, max_duration=300.0)

    def test_from_mapping_rejects_bad_duration(self):
        with pytest.raises(ValueError):
            LibraryFilters.from_mapping({"minDuration": "long"})

    def test_to_dict_omits_unset(self):
        assert LibraryFilters(artist="A", min_duration=10).to_dict() == {
            "artist": "A",
            "minDuration": 10,
        }
        assert LibraryFilters().is_empty()


class TestList:
    def test_first_page(self, index):
        page = index.list()
        assert titles(page.items) == ["Paranoid Android", "Karma Police"]
        assert page.total == 4
        assert page.page == 1
        assert page.page_size == 2
        assert page.total_pages == 2

    def test_page_out_of_range_is_empty(self, make_entry):
        idx = LibraryIndex()
        idx.replace(LibrarySnapshot.build([make_entry(f"Song {i}") for i in range(10)]))

        page = idx.list(page=999)

        assert page.items == []
        assert page.total == 10
        assert page.total_pages == 1

    def test_invalid_page_and_size_normalized(self, index):
        page = index.list(page=0, page_size=-5)
        assert page.page == 1
        assert page.page_size == 2

    def test_list_not_capped(self, make_entry):
        idx = LibraryIndex(max_results=3, default_page_size=50)
        idx.replace(LibrarySnapshot.build([make_entry(f"Song {i}") for i in range(10)]))
        assert len(idx.list().items) == 10

    def test_filtered_listing(self, index):
        page = index.list(LibraryFilters(artist="radiohead"), page=2, page_size=1)
        assert titles(page.items) == ["Karma Police"]
        assert page.total_pages == 2

    def test_empty_catalog(self):
        page = LibraryIndex().list()
        assert page.items == []
        assert page.total == 0
        assert page.total_pages == 0


class TestLookupsAndFacets:
    def test_get_by_id(self, index, sample_entries):
        assert index.get_by_id(sample_entries[2].id) == sample_entries[2]
        assert index.get_by_id("missing") is None

    def test_distinct_artists_sorted(self, index):
        assert index.distinct_artists() == ["Aphex Twin", "Massive Attack", "Radiohead"]

    def test_distinct_albums_by_artist(self, index):
        assert index.distinct_albums("Radiohead") == ["OK Computer"]
        assert index.distinct_albums() == ["Mezzanine", "OK Computer", "Windowlicker"]

    def test_distinct_genres_flattened(self, index):
        assert index.distinct_genres() == ["Alternative", "Electronic", "Rock", "Trip Hop"]

    def test_stats(self, index):
        stats = index.stats()
        assert stats["total_entries"] == 4
        assert stats["artists"] == 3
        assert stats["formats"] == {"mp3": 2, "flac": 1, "wav": 1}
        assert stats["total_duration"] == 387.0 + 264.0 + 330.0 + 367.0

    def test_replace_swaps_snapshot(self, index, make_entry):
        new = LibrarySnapshot.build([make_entry("Only")])
        index.replace(new)
        assert index.snapshot is new
        assert titles(index.search("")) == ["Only"]
