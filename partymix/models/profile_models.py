"""
Profile Models

Data models shared by the source adapters, the entity resolver and the
profile assembler. Common* entities are per-service and immutable; Merged*
entities accumulate across services during a single generation run.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Optional, Tuple


class ServiceType(Enum):
    """Supported streaming services. Declaration order is the fallback priority."""
    SPOTIFY = "spotify"
    APPLE_MUSIC = "apple-music"
    LASTFM = "lastfm"


NEUTRAL_DESCRIPTOR_VALUE = 50.0
NEUTRAL_TEMPO = 120.0


@dataclass(frozen=True)
class CommonTrack:
    """A track as reported by one service, mapped to the common shape."""
    source_service: ServiceType
    source_id: str
    title: str
    artist_name: str
    album_name: Optional[str] = None
    duration_ms: int = 0
    image_url: Optional[str] = None
    standard_recording_id: Optional[str] = None  # ISRC
    source_rank: int = 0


@dataclass(frozen=True)
class CommonArtist:
    """An artist as reported by one service, mapped to the common shape."""
    source_service: ServiceType
    source_id: str
    name: str
    image_url: Optional[str] = None
    genres: Tuple[str, ...] = ()
    source_rank: int = 0


@dataclass(frozen=True)
class AcousticDescriptors:
    """
    Acoustic descriptor vector.

    All dimensions are on a 0-100 scale except tempo, which is raw BPM.
    A per-track vector may leave dimensions unset (None); the profile-level
    vector produced by the aggregator always has every dimension set.
    """
    danceability: Optional[float] = None
    energy: Optional[float] = None
    valence: Optional[float] = None
    acousticness: Optional[float] = None
    instrumentalness: Optional[float] = None
    speechiness: Optional[float] = None
    liveness: Optional[float] = None
    tempo: Optional[float] = None

    @classmethod
    def dimensions(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def neutral(cls) -> "AcousticDescriptors":
        """Vector with every dimension at its neutral default."""
        values = {
            name: NEUTRAL_DESCRIPTOR_VALUE for name in cls.dimensions()
        }
        values["tempo"] = NEUTRAL_TEMPO
        return cls(**values)

    def is_empty(self) -> bool:
        return all(getattr(self, name) is None for name in self.dimensions())

    def filled_from(self, other: "AcousticDescriptors") -> "AcousticDescriptors":
        """Return a copy with unset dimensions taken from ``other``."""
        missing = {
            name: getattr(other, name)
            for name in self.dimensions()
            if getattr(self, name) is None and getattr(other, name) is not None
        }
        return replace(self, **missing) if missing else self

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {name: getattr(self, name) for name in self.dimensions()}


@dataclass
class MergedTrack:
    """
    One recording, merged from one or more services.

    ``contributing_sources`` maps service to that service's native track id
    and never holds two entries for the same service.
    """
    id: str
    title: str
    artist_display_name: str
    image_url: Optional[str] = None
    standard_recording_id: Optional[str] = None
    contributing_sources: Dict[ServiceType, str] = field(default_factory=dict)
    popularity_score: float = 0.0
    audio_features: Optional[AcousticDescriptors] = None

    @property
    def is_cross_service(self) -> bool:
        return len(self.contributing_sources) > 1

    def snapshot(self) -> "MergedTrack":
        """Copy with a read-only ``contributing_sources`` mapping."""
        return replace(
            self, contributing_sources=MappingProxyType(dict(self.contributing_sources))
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "artist_display_name": self.artist_display_name,
            "image_url": self.image_url,
            "standard_recording_id": self.standard_recording_id,
            "contributing_sources": {
                service.value: source_id
                for service, source_id in self.contributing_sources.items()
            },
            "popularity_score": self.popularity_score,
        }


@dataclass
class MergedArtist:
    """
    One artist merged across services by normalized name.

    ``genres`` and ``contributing_sources`` are kept as ordered, duplicate-free
    lists so that downstream ranking is deterministic.
    """
    name: str
    image_url: Optional[str] = None
    genres: List[str] = field(default_factory=list)
    contributing_sources: List[ServiceType] = field(default_factory=list)
    popularity_score: float = 0.0

    def add_genres(self, genres) -> None:
        for genre in genres:
            if genre not in self.genres:
                self.genres.append(genre)

    def add_source(self, service: ServiceType) -> bool:
        """Record a contributing service. Returns False if already present."""
        if service in self.contributing_sources:
            return False
        self.contributing_sources.append(service)
        return True

    def snapshot(self) -> "MergedArtist":
        """Copy with ``genres`` and ``contributing_sources`` as tuples."""
        return replace(
            self,
            genres=tuple(self.genres),
            contributing_sources=tuple(self.contributing_sources)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "image_url": self.image_url,
            "genres": list(self.genres),
            "contributing_sources": [s.value for s in self.contributing_sources],
            "popularity_score": self.popularity_score,
        }


@dataclass
class ServicePayload:
    """Raw, service-native data fetched for one user from one service."""
    service: ServiceType
    tracks: List[Dict[str, Any]] = field(default_factory=list)
    artists: List[Dict[str, Any]] = field(default_factory=list)
    audio_features: List[Dict[str, Any]] = field(default_factory=list)
    # Heavy-rotation / library style lists used when no ranking API exists
    play_history: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class UnifiedProfile:
    """
    The unified taste profile. Created fresh on every generation.

    Ranked tracks and artists are snapshots taken after resolution, so their
    source and genre collections are read-only.
    """
    user_id: str
    source_services: Tuple[ServiceType, ...]
    top_tracks: Tuple[MergedTrack, ...]
    top_artists: Tuple[MergedArtist, ...]
    top_genres: Tuple[str, ...]
    audio_features: AcousticDescriptors
    party_readiness: int
    generated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Persisted shape handed to the profile store."""
        return {
            "user_id": self.user_id,
            "source_services": [s.value for s in self.source_services],
            "top_tracks": [track.to_dict() for track in self.top_tracks],
            "top_artists": [artist.to_dict() for artist in self.top_artists],
            "top_genres": list(self.top_genres),
            "audio_features": self.audio_features.to_dict(),
            "party_readiness": self.party_readiness,
            "generated_at": self.generated_at.isoformat(),
        }


@dataclass(frozen=True)
class ProfileStats:
    """Debug/UI statistics for one generation. Not persisted."""
    total_tracks: int
    total_artists: int
    total_genres: int
    connected_services: Tuple[ServiceType, ...]
    cross_service_tracks: int
    failed_services: Tuple[ServiceType, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_tracks": self.total_tracks,
            "total_artists": self.total_artists,
            "total_genres": self.total_genres,
            "connected_services": [s.value for s in self.connected_services],
            "cross_service_tracks": self.cross_service_tracks,
            "failed_services": [s.value for s in self.failed_services],
        }


@dataclass(frozen=True)
class ProfileReport:
    """A generated profile together with its statistics."""
    profile: UnifiedProfile
    stats: ProfileStats
