"""
Last.fm API Client

Fetches a user's scrobble-based top tracks and top artists. Last.fm has
no audio features and no ISRCs, so its tracks never merge by recording id.
"""

from typing import Any, Dict, List, Optional

import structlog

from ..models.profile_models import ServicePayload, ServiceType
from .base_client import BaseAPIClient
from .rate_limiter import RateLimiter

logger = structlog.get_logger(__name__)


class LastFmClient(BaseAPIClient):
    """Last.fm API client for one user's public listening statistics."""

    BASE_URL = "https://ws.audioscrobbler.com/2.0/"

    service = ServiceType.LASTFM

    def __init__(
        self,
        api_key: str,
        username: str,
        rate_limiter: Optional[RateLimiter] = None,
        period: str = "6month",
        limit: int = 50,
        timeout: int = 10,
        retries: int = 2
    ):
        """
        Initialize Last.fm client.

        Args:
            api_key: Last.fm API key
            username: Last.fm user whose charts are read
            rate_limiter: Rate limiter instance (default limiter if not provided)
            period: Chart period (7day, 1month, 3month, 6month, 12month, overall)
            limit: Items per chart
            timeout: Request timeout in seconds
            retries: Retry attempts per request
        """
        super().__init__(
            base_url=self.BASE_URL,
            rate_limiter=rate_limiter or RateLimiter.for_lastfm(),
            timeout=timeout,
            retries=retries
        )
        self.api_key = api_key
        self.username = username
        self.period = period
        self.limit = limit

    def _auth_headers(self) -> Dict[str, str]:
        return {}

    def _extract_api_error(self, data: Any) -> Optional[str]:
        if isinstance(data, dict) and "error" in data:
            return data.get("message", f"Error {data['error']}")
        return None

    async def _make_lastfm_request(self, method: str, **params) -> Dict[str, Any]:
        return await self._make_request("", {
            "method": method,
            "user": self.username,
            "api_key": self.api_key,
            "format": "json",
            **params
        }) or {}

    async def get_top_tracks(self) -> List[Dict[str, Any]]:
        data = await self._make_lastfm_request(
            "user.getTopTracks", period=self.period, limit=self.limit
        )
        return (data.get("toptracks") or {}).get("track") or []

    async def get_top_artists(self) -> List[Dict[str, Any]]:
        data = await self._make_lastfm_request(
            "user.getTopArtists", period=self.period, limit=self.limit
        )
        return (data.get("topartists") or {}).get("artist") or []

    async def fetch_payload(self) -> ServicePayload:
        tracks = await self.get_top_tracks()
        artists = await self.get_top_artists()

        self.logger.info(
            "Last.fm payload fetched",
            username=self.username,
            tracks=len(tracks),
            artists=len(artists)
        )

        return ServicePayload(service=self.service, tracks=tracks, artists=artists)
