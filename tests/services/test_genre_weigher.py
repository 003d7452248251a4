"""
Tests for GenreWeigher.
"""

import pytest

from partymix.models import EngineConfig, MergedArtist, ServiceType
from partymix.services.components.genre_weigher import GenreWeigher


def merged_artist(name, genres, services):
    return MergedArtist(name=name, genres=list(genres), contributing_sources=list(services))


@pytest.fixture
def weigher():
    return GenreWeigher(EngineConfig())


class TestGenreWeigher:
    """Test genre weighting and ranking."""

    def test_weight_uses_strongest_contributing_service(self, weigher):
        artists = [
            merged_artist("Daft Punk", ["electronic"], [ServiceType.APPLE_MUSIC, ServiceType.SPOTIFY]),
            merged_artist("Justice", ["electronic", "nu disco"], [ServiceType.LASTFM]),
        ]

        table = weigher.build_weight_table(artists)

        assert table == {"electronic": 3.0, "nu disco": 1.0}

    def test_ties_keep_first_seen_order(self, weigher):
        artists = [
            merged_artist("A", ["rock", "indie"], [ServiceType.APPLE_MUSIC]),
            merged_artist("B", ["pop"], [ServiceType.SPOTIFY]),
        ]

        assert weigher.top_genres(artists) == ["pop", "rock", "indie"]

    def test_top_genres_truncated(self):
        weigher = GenreWeigher(EngineConfig(top_genres_limit=3))
        artists = [
            merged_artist(f"Artist {i}", [f"genre {i}"], [ServiceType.SPOTIFY])
            for i in range(10)
        ]

        top = weigher.top_genres(artists)

        assert top == ["genre 0", "genre 1", "genre 2"]

    def test_default_limit_is_fifteen(self, weigher):
        artists = [
            merged_artist("Everything", [f"genre {i}" for i in range(40)], [ServiceType.LASTFM])
        ]

        assert len(weigher.top_genres(artists)) == 15

    def test_no_artists(self, weigher):
        assert weigher.top_genres([]) == []
