"""
Entity Resolver

Merges per-service common entities into cross-service identities:
tracks by standardized recording id (ISRC), artists by normalized name.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set

import structlog

from ...models.config_models import EngineConfig
from ...models.profile_models import (
    AcousticDescriptors,
    CommonArtist,
    CommonTrack,
    MergedArtist,
    MergedTrack,
    ServiceType,
)
from .source_adapters import AdaptedSource

logger = structlog.get_logger(__name__)


def normalize_artist_key(name: str) -> str:
    """Case-insensitive, whitespace-collapsed artist key."""
    return " ".join((name or "").lower().split())


def order_services(
    services: Iterable[ServiceType],
    primary_service: Optional[ServiceType] = None
) -> List[ServiceType]:
    """
    Processing order: the primary service first, then the rest in
    ServiceType declaration order.
    """
    available = set(services)
    ordered = [service for service in ServiceType if service in available]
    if primary_service in available:
        ordered.remove(primary_service)
        ordered.insert(0, primary_service)
    return ordered


def rank_contribution(base_weight: float, source_rank: int) -> float:
    return max(base_weight - source_rank, 0.0)


@dataclass
class ResolvedEntities:
    """Merged tracks and artists in insertion (first-seen) order."""
    tracks: List[MergedTrack] = field(default_factory=list)
    artists: List[MergedArtist] = field(default_factory=list)
    service_order: List[ServiceType] = field(default_factory=list)


class EntityResolver:
    """
    Builds merged tracks and artists for one user and one generation run.

    Tracks sharing an ISRC merge into one MergedTrack; tracks without an
    ISRC always stand alone. Artists merge on normalized name only, so two
    spellings of the same artist stay separate.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.logger = logger.bind(component="EntityResolver")

    def resolve(
        self,
        sources: Sequence[AdaptedSource],
        primary_service: Optional[ServiceType] = None
    ) -> ResolvedEntities:
        """
        Merge adapted sources into resolved entities.

        Args:
            sources: One adapted source per service that produced data
            primary_service: Service processed first (most recently connected)

        Returns:
            ResolvedEntities with tracks and artists in first-seen order
        """
        by_service: Dict[ServiceType, AdaptedSource] = {}
        for source in sources:
            by_service.setdefault(source.service, source)

        service_order = order_services(by_service, primary_service)
        ordered_sources = [by_service[service] for service in service_order]

        resolved = ResolvedEntities(
            tracks=self.merge_tracks(ordered_sources),
            artists=self.merge_artists(ordered_sources),
            service_order=service_order,
        )

        self.logger.info(
            "Entities resolved",
            service_order=[s.value for s in service_order],
            merged_tracks=len(resolved.tracks),
            merged_artists=len(resolved.artists),
            cross_service_tracks=sum(1 for t in resolved.tracks if t.is_cross_service)
        )
        return resolved

    def merge_tracks(self, ordered_sources: Sequence[AdaptedSource]) -> List[MergedTrack]:
        merged: List[MergedTrack] = []
        by_isrc: Dict[str, MergedTrack] = {}
        used_ids: Set[str] = set()

        for source in ordered_sources:
            base_weight = self.config.track_base_weight(source.service)

            for track in source.tracks:
                contribution = rank_contribution(base_weight, track.source_rank)
                features = source.audio_features.get(track.source_id)
                isrc = track.standard_recording_id
                existing = by_isrc.get(isrc) if isrc else None

                if existing is None:
                    merged_track = self._seed_track(track, contribution, features, used_ids)
                    merged.append(merged_track)
                    if isrc:
                        by_isrc[isrc] = merged_track
                    continue

                if track.source_service in existing.contributing_sources:
                    # Same recording listed twice by one service; the first
                    # (higher ranked) entry already counted.
                    self.logger.debug(
                        "Skipping same-service duplicate recording",
                        isrc=isrc,
                        source_service=track.source_service.value,
                        source_id=track.source_id
                    )
                    continue

                self._attach_track(existing, track, contribution, features)

        return merged

    def _seed_track(
        self,
        track: CommonTrack,
        contribution: float,
        features: Optional[AcousticDescriptors],
        used_ids: Set[str]
    ) -> MergedTrack:
        merged_id = f"unified_{track.source_service.value}_{track.source_id}"
        if merged_id in used_ids:
            suffix = 2
            while f"{merged_id}_{suffix}" in used_ids:
                suffix += 1
            merged_id = f"{merged_id}_{suffix}"
        used_ids.add(merged_id)

        return MergedTrack(
            id=merged_id,
            title=track.title,
            artist_display_name=track.artist_name,
            image_url=track.image_url,
            standard_recording_id=track.standard_recording_id,
            contributing_sources={track.source_service: track.source_id},
            popularity_score=contribution,
            audio_features=features,
        )

    def _attach_track(
        self,
        existing: MergedTrack,
        track: CommonTrack,
        contribution: float,
        features: Optional[AcousticDescriptors]
    ) -> None:
        existing.contributing_sources[track.source_service] = track.source_id
        existing.popularity_score += contribution
        if not existing.image_url:
            existing.image_url = track.image_url
        if features is not None:
            existing.audio_features = (
                existing.audio_features.filled_from(features)
                if existing.audio_features is not None
                else features
            )

    def merge_artists(self, ordered_sources: Sequence[AdaptedSource]) -> List[MergedArtist]:
        merged: Dict[str, MergedArtist] = {}

        for source in ordered_sources:
            base_weight = self.config.artist_base_weight(source.service)

            for artist in source.artists:
                key = normalize_artist_key(artist.name)
                contribution = rank_contribution(base_weight, artist.source_rank)
                existing = merged.get(key)

                if existing is None:
                    merged[key] = self._seed_artist(artist, contribution)
                    continue

                existing.add_genres(artist.genres)
                if not existing.image_url:
                    existing.image_url = artist.image_url
                if existing.add_source(artist.source_service):
                    existing.popularity_score += contribution

        return list(merged.values())

    def _seed_artist(self, artist: CommonArtist, contribution: float) -> MergedArtist:
        merged_artist = MergedArtist(
            name=artist.name,
            image_url=artist.image_url,
            popularity_score=contribution,
        )
        merged_artist.add_genres(artist.genres)
        merged_artist.add_source(artist.source_service)
        return merged_artist
