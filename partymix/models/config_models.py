"""
Configuration Models for PartyMix

Pydantic models for engine tuning, upstream client settings and storage.
"""

import os
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .profile_models import ServiceType


def _default_track_weights() -> Dict[ServiceType, float]:
    return {
        ServiceType.SPOTIFY: 50.0,
        ServiceType.APPLE_MUSIC: 30.0,
        ServiceType.LASTFM: 30.0,
    }


def _default_artist_weights() -> Dict[ServiceType, float]:
    return {
        ServiceType.SPOTIFY: 30.0,
        ServiceType.APPLE_MUSIC: 20.0,
        ServiceType.LASTFM: 20.0,
    }


def _default_genre_weights() -> Dict[ServiceType, float]:
    return {
        ServiceType.SPOTIFY: 2.0,
        ServiceType.APPLE_MUSIC: 1.0,
        ServiceType.LASTFM: 1.0,
    }


class EngineConfig(BaseModel):
    """Tunable constants for the resolution and scoring engine"""

    # Output bounds
    top_tracks_limit: int = Field(default=30, ge=0, le=30, description="Maximum tracks in a profile")
    top_artists_limit: int = Field(default=20, ge=0, le=20, description="Maximum artists in a profile")
    top_genres_limit: int = Field(default=15, ge=0, le=15, description="Maximum genres in a profile")

    # Per-service weight tables
    track_base_weights: Dict[ServiceType, float] = Field(
        default_factory=_default_track_weights,
        description="Rank-derived popularity base for tracks, per service"
    )
    artist_base_weights: Dict[ServiceType, float] = Field(
        default_factory=_default_artist_weights,
        description="Rank-derived popularity base for artists, per service"
    )
    genre_weights: Dict[ServiceType, float] = Field(
        default_factory=_default_genre_weights,
        description="Weight added per genre occurrence, per service"
    )

    # Upstream fetching
    fetch_timeout_seconds: float = Field(default=15.0, gt=0, description="Per-service fetch timeout")
    request_timeout_seconds: int = Field(default=10, gt=0, description="Single HTTP request timeout")
    request_retries: int = Field(default=2, ge=0, description="Retry attempts per HTTP request")
    top_items_limit: int = Field(default=50, ge=1, le=50, description="Items requested per top list")

    # Rate limiting
    spotify_calls_per_second: float = Field(default=5.0, gt=0, description="Spotify requests per second")
    apple_music_calls_per_second: float = Field(default=5.0, gt=0, description="Apple Music requests per second")
    lastfm_calls_per_second: float = Field(default=3.0, gt=0, description="Last.fm requests per second")

    # Credentials that belong to the application, not to the user
    lastfm_api_key: Optional[str] = Field(default=None, description="Last.fm API key")
    apple_developer_token: Optional[str] = Field(default=None, description="Apple Music developer JWT")

    # Storage
    profile_store_directory: str = Field(default="data/profiles", description="DiskProfileStore directory")

    def track_base_weight(self, service: ServiceType) -> float:
        return self.track_base_weights.get(service, 0.0)

    def artist_base_weight(self, service: ServiceType) -> float:
        return self.artist_base_weights.get(service, 0.0)

    def genre_weight(self, service: ServiceType) -> float:
        return self.genre_weights.get(service, 0.0)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, **overrides) -> "EngineConfig":
        """
        Build configuration from environment variables (and a .env file).

        Args:
            env_file: Optional path to a .env file
            **overrides: Explicit values that win over the environment

        Returns:
            Configured EngineConfig
        """
        load_dotenv(env_file)

        values = {}
        env_map = {
            "lastfm_api_key": "LASTFM_API_KEY",
            "apple_developer_token": "APPLE_MUSIC_DEVELOPER_TOKEN",
            "profile_store_directory": "PROFILE_STORE_DIR",
            "fetch_timeout_seconds": "PARTYMIX_FETCH_TIMEOUT",
        }
        for field_name, env_name in env_map.items():
            value = os.getenv(env_name)
            if value:
                values[field_name] = value

        values.update(overrides)
        return cls(**values)
