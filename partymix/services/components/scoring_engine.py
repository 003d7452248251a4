"""
Scoring Engine

Party-readiness scoring and the ranked top lists of a profile.
"""

import math
from typing import List, Optional, Protocol, Sequence

from ...models.profile_models import AcousticDescriptors, MergedArtist, MergedTrack

MIN_SCORE = 0
MAX_SCORE = 100


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative input (``Math.round`` style)."""
    return int(math.floor(value + 0.5))


def clamp_score(value: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, value))


class ScoringPolicy(Protocol):
    """Maps a complete profile descriptor vector to a 0-100 score."""

    def score(self, descriptors: AcousticDescriptors) -> int:
        ...


class LinearPartyPolicy:
    """
    Weighted linear party-readiness score.

    Danceability and energy dominate, valence helps, and acoustic-heavy
    profiles lose points through the inverted acousticness term.
    """

    def __init__(
        self,
        danceability_weight: float = 0.35,
        energy_weight: float = 0.35,
        valence_weight: float = 0.20,
        electric_weight: float = 0.10
    ):
        self.danceability_weight = danceability_weight
        self.energy_weight = energy_weight
        self.valence_weight = valence_weight
        self.electric_weight = electric_weight

    def score(self, descriptors: AcousticDescriptors) -> int:
        raw = (
            self.danceability_weight * descriptors.danceability
            + self.energy_weight * descriptors.energy
            + self.valence_weight * descriptors.valence
            + self.electric_weight * (100 - descriptors.acousticness)
        )
        return clamp_score(round_half_up(raw))


class ScoringEngine:
    """Ranks merged entities and scores the profile through a policy."""

    def __init__(
        self,
        policy: Optional[ScoringPolicy] = None,
        track_limit: int = 30,
        artist_limit: int = 20
    ):
        self.policy = policy or LinearPartyPolicy()
        self.track_limit = track_limit
        self.artist_limit = artist_limit

    def party_readiness(
        self,
        descriptors: AcousticDescriptors,
        tracks: Sequence[MergedTrack],
        artists: Sequence[MergedArtist]
    ) -> int:
        """Score the profile; a profile with no tracks and no artists scores 0."""
        if not tracks and not artists:
            return MIN_SCORE
        return clamp_score(int(self.policy.score(descriptors)))

    def rank_tracks(self, tracks: Sequence[MergedTrack]) -> List[MergedTrack]:
        ranked = sorted(tracks, key=lambda track: track.popularity_score, reverse=True)
        return ranked[:self.track_limit]

    def rank_artists(self, artists: Sequence[MergedArtist]) -> List[MergedArtist]:
        ranked = sorted(artists, key=lambda artist: artist.popularity_score, reverse=True)
        return ranked[:self.artist_limit]

    @staticmethod
    def count_cross_service(tracks: Sequence[MergedTrack]) -> int:
        return sum(1 for track in tracks if track.is_cross_service)
