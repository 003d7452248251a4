"""
API Client Factory

Creates per-user upstream clients from connection records. The set of
supported services is closed, so dispatch is a match over ServiceType.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

import structlog

from ..models.config_models import EngineConfig
from ..models.profile_models import ServiceType
from .apple_music_client import AppleMusicClient
from .base_client import BaseAPIClient
from .lastfm_client import LastFmClient
from .rate_limiter import RateLimiter
from .spotify_client import SpotifyClient

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ServiceConnection:
    """
    A user's already-authenticated link to one service.

    ``token`` is the Spotify access token or the Apple Music-User-Token;
    Last.fm needs only ``username``.
    """
    service: ServiceType
    token: Optional[str] = None
    username: Optional[str] = None


class APIClientFactory:
    """
    Factory for configured upstream clients.

    Rate limiters are shared across clients of the same service so that
    concurrent generations for different users respect one budget.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.logger = logger.bind(service="APIClientFactory")
        self._rate_limiters: Dict[ServiceType, RateLimiter] = {}

    def _rate_limiter(self, service: ServiceType) -> RateLimiter:
        if service not in self._rate_limiters:
            match service:
                case ServiceType.SPOTIFY:
                    limiter = RateLimiter.for_spotify(self.config.spotify_calls_per_second)
                case ServiceType.APPLE_MUSIC:
                    limiter = RateLimiter.for_apple_music(self.config.apple_music_calls_per_second)
                case ServiceType.LASTFM:
                    limiter = RateLimiter.for_lastfm(self.config.lastfm_calls_per_second)
            self._rate_limiters[service] = limiter
        return self._rate_limiters[service]

    def create_client(self, connection: ServiceConnection) -> BaseAPIClient:
        """
        Create the client for one connection.

        Raises:
            ValueError: If the connection or application credentials are incomplete
        """
        common = {
            "rate_limiter": self._rate_limiter(connection.service),
            "timeout": self.config.request_timeout_seconds,
            "retries": self.config.request_retries,
        }

        match connection.service:
            case ServiceType.SPOTIFY:
                if not connection.token:
                    raise ValueError("Spotify connection requires an access token")
                return SpotifyClient(
                    access_token=connection.token,
                    limit=self.config.top_items_limit,
                    **common
                )
            case ServiceType.APPLE_MUSIC:
                if not connection.token:
                    raise ValueError("Apple Music connection requires a Music-User-Token")
                if not self.config.apple_developer_token:
                    raise ValueError("Apple Music developer token is not configured")
                return AppleMusicClient(
                    developer_token=self.config.apple_developer_token,
                    music_user_token=connection.token,
                    **common
                )
            case ServiceType.LASTFM:
                if not connection.username:
                    raise ValueError("Last.fm connection requires a username")
                if not self.config.lastfm_api_key:
                    raise ValueError("Last.fm API key is not configured")
                return LastFmClient(
                    api_key=self.config.lastfm_api_key,
                    username=connection.username,
                    limit=self.config.top_items_limit,
                    **common
                )
        raise ValueError(f"Unsupported service: {connection.service!r}")

    def create_fetchers(
        self,
        connections: Iterable[ServiceConnection]
    ) -> Dict[ServiceType, BaseAPIClient]:
        """
        Create one client per connected service.

        Connections that cannot produce a client are logged and skipped, the
        same way a failed fetch is.
        """
        fetchers: Dict[ServiceType, BaseAPIClient] = {}
        for connection in connections:
            if connection.service in fetchers:
                continue
            try:
                fetchers[connection.service] = self.create_client(connection)
            except ValueError as e:
                self.logger.warning(
                    "Skipping unusable connection",
                    connected_service=connection.service.value,
                    error=str(e)
                )

        self.logger.debug("Fetchers created", services=[s.value for s in fetchers])
        return fetchers

    def get_rate_limiter_stats(self) -> Dict[str, Dict]:
        return {
            service.value: limiter.get_current_usage()
            for service, limiter in self._rate_limiters.items()
        }

    def reset_rate_limiters(self) -> None:
        for limiter in self._rate_limiters.values():
            limiter.reset()
