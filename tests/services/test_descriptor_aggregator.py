"""
Tests for the descriptor aggregator.
"""

import pytest

from partymix.models import AcousticDescriptors, MergedTrack, ServiceType
from partymix.services.components.descriptor_aggregator import aggregate_descriptors


def merged_track(track_id, features=None):
    return MergedTrack(
        id=track_id,
        title="Song",
        artist_display_name="Artist",
        contributing_sources={ServiceType.SPOTIFY: track_id},
        audio_features=features,
    )


class TestAggregateDescriptors:
    """Test profile-level descriptor averaging."""

    def test_mean_over_contributing_tracks(self):
        tracks = [
            merged_track("t1", AcousticDescriptors(danceability=80.0, energy=60.0, tempo=120.0)),
            merged_track("t2", AcousticDescriptors(danceability=40.0, tempo=130.0)),
            merged_track("t3"),
        ]

        result = aggregate_descriptors(tracks)

        assert result.danceability == pytest.approx(60.0)
        assert result.energy == pytest.approx(60.0)
        assert result.tempo == pytest.approx(125.0)

    def test_missing_dimensions_default_to_neutral(self):
        result = aggregate_descriptors([merged_track("t1", AcousticDescriptors(energy=90.0))])

        assert result.energy == 90.0
        assert result.valence == 50.0
        assert result.acousticness == 50.0
        assert result.tempo == 120.0

    def test_no_tracks_gives_neutral_vector(self):
        assert aggregate_descriptors([]) == AcousticDescriptors.neutral()

    def test_every_dimension_is_set(self):
        result = aggregate_descriptors([merged_track("t1")])

        assert all(value is not None for value in result.to_dict().values())
