"""
Genre Weigher

Builds the per-run genre weight table from merged artists and picks the
top genres.
"""

from typing import Dict, List, Optional, Sequence

import structlog

from ...models.config_models import EngineConfig
from ...models.profile_models import MergedArtist

logger = structlog.get_logger(__name__)


class GenreWeigher:
    """Weights genres by the strongest service that reported each artist."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.logger = logger.bind(component="GenreWeigher")

    def _artist_weight(self, artist: MergedArtist) -> float:
        return max(
            (self.config.genre_weight(service) for service in artist.contributing_sources),
            default=0.0
        )

    def build_weight_table(self, artists: Sequence[MergedArtist]) -> Dict[str, float]:
        """
        Accumulate genre weights in artist order.

        Each genre of an artist gains the highest genre weight among that
        artist's contributing services. The returned dict keeps first-seen
        genre order.
        """
        table: Dict[str, float] = {}
        for artist in artists:
            weight = self._artist_weight(artist)
            for genre in artist.genres:
                table[genre] = table.get(genre, 0.0) + weight
        return table

    def top_genres(self, artists: Sequence[MergedArtist]) -> List[str]:
        table = self.build_weight_table(artists)
        # sorted() is stable, so equal weights keep first-seen order
        ranked = sorted(table, key=lambda genre: table[genre], reverse=True)
        top = ranked[:self.config.top_genres_limit]

        self.logger.debug(
            "Genres weighted",
            distinct_genres=len(table),
            top_genres=top
        )
        return top
