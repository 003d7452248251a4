"""
API Module

Upstream streaming-service clients with shared HTTP handling,
rate limiting and error handling.
"""

from .base_client import BaseAPIClient
from .rate_limiter import RateLimiter
from .spotify_client import SpotifyClient
from .apple_music_client import AppleMusicClient
from .lastfm_client import LastFmClient
from .client_factory import APIClientFactory, ServiceConnection

__all__ = [
    # Base infrastructure
    "BaseAPIClient",
    "RateLimiter",

    # Service clients
    "SpotifyClient",
    "AppleMusicClient",
    "LastFmClient",

    # Client factory
    "APIClientFactory",
    "ServiceConnection",
]
