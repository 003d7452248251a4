"""
Spotify Web API Client

Fetches a user's top tracks, top artists and per-track audio features.
Used as the usual primary data source for PartyMix.
"""

from typing import Any, Dict, List, Optional

import structlog

from ..errors import UpstreamServiceError
from ..models.profile_models import ServicePayload, ServiceType
from .base_client import BaseAPIClient
from .rate_limiter import RateLimiter

logger = structlog.get_logger(__name__)


class SpotifyClient(BaseAPIClient):
    """
    Spotify Web API client bound to one user's access token.

    Token refresh is handled upstream; this client only consumes a valid token.
    """

    BASE_URL = "https://api.spotify.com/v1"
    MAX_IDS_PER_REQUEST = 100

    service = ServiceType.SPOTIFY

    def __init__(
        self,
        access_token: str,
        rate_limiter: Optional[RateLimiter] = None,
        time_range: str = "medium_term",
        limit: int = 50,
        timeout: int = 10,
        retries: int = 2
    ):
        """
        Initialize Spotify client.

        Args:
            access_token: User access token with the user-top-read scope
            rate_limiter: Rate limiter instance (default limiter if not provided)
            time_range: Spotify affinity window (short_term, medium_term, long_term)
            limit: Items per top list (max 50)
            timeout: Request timeout in seconds
            retries: Retry attempts per request
        """
        super().__init__(
            base_url=self.BASE_URL,
            rate_limiter=rate_limiter or RateLimiter.for_spotify(),
            timeout=timeout,
            retries=retries
        )
        self.access_token = access_token
        self.time_range = time_range
        self.limit = min(limit, 50)

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def _extract_api_error(self, data: Any) -> Optional[str]:
        if isinstance(data, dict) and "error" in data:
            error_info = data["error"]
            if isinstance(error_info, dict):
                return error_info.get("message", f"Error {error_info.get('status', 'unknown')}")
            return str(error_info)
        return None

    async def get_top_tracks(self) -> List[Dict[str, Any]]:
        data = await self._make_request(
            "me/top/tracks",
            {"limit": self.limit, "time_range": self.time_range}
        )
        return (data or {}).get("items") or []

    async def get_top_artists(self) -> List[Dict[str, Any]]:
        data = await self._make_request(
            "me/top/artists",
            {"limit": self.limit, "time_range": self.time_range}
        )
        return (data or {}).get("items") or []

    async def get_audio_features(self, track_ids: List[str]) -> List[Dict[str, Any]]:
        """
        Get audio features for a batch of tracks.

        Spotify returns null entries for tracks without analysis; those are
        dropped here.
        """
        features: List[Dict[str, Any]] = []
        track_ids = [track_id for track_id in track_ids if track_id]

        for start in range(0, len(track_ids), self.MAX_IDS_PER_REQUEST):
            batch = track_ids[start:start + self.MAX_IDS_PER_REQUEST]
            data = await self._make_request("audio-features", {"ids": ",".join(batch)})
            features.extend(
                item for item in (data or {}).get("audio_features") or [] if item
            )

        return features

    async def fetch_payload(self) -> ServicePayload:
        tracks = await self.get_top_tracks()
        artists = await self.get_top_artists()

        # Audio features are optional; losing them must not lose the service
        audio_features: List[Dict[str, Any]] = []
        try:
            audio_features = await self.get_audio_features(
                [track.get("id") for track in tracks if isinstance(track, dict)]
            )
        except UpstreamServiceError as e:
            self.logger.warning("Audio features unavailable", error=str(e))

        self.logger.info(
            "Spotify payload fetched",
            tracks=len(tracks),
            artists=len(artists),
            audio_features=len(audio_features)
        )

        return ServicePayload(
            service=self.service,
            tracks=tracks,
            artists=artists,
            audio_features=audio_features
        )
