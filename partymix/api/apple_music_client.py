"""
Apple Music API Client

Apple Music has no ranked "top tracks" endpoint, so this client collects
the listening-history style lists (heavy rotation, recently played, library
songs) and leaves rank derivation to the source adapter.
"""

from typing import Any, Dict, List, Optional

import structlog

from ..errors import UpstreamServiceError
from ..models.profile_models import ServicePayload, ServiceType
from .base_client import BaseAPIClient
from .rate_limiter import RateLimiter

logger = structlog.get_logger(__name__)


class AppleMusicClient(BaseAPIClient):
    """Apple Music API client bound to one user's Music-User-Token."""

    BASE_URL = "https://api.music.apple.com/v1"

    service = ServiceType.APPLE_MUSIC

    def __init__(
        self,
        developer_token: str,
        music_user_token: str,
        rate_limiter: Optional[RateLimiter] = None,
        limit: int = 30,
        timeout: int = 10,
        retries: int = 2
    ):
        """
        Initialize Apple Music client.

        Args:
            developer_token: Application developer JWT
            music_user_token: The user's Music-User-Token
            rate_limiter: Rate limiter instance (default limiter if not provided)
            limit: Items requested per history list
            timeout: Request timeout in seconds
            retries: Retry attempts per request
        """
        super().__init__(
            base_url=self.BASE_URL,
            rate_limiter=rate_limiter or RateLimiter.for_apple_music(),
            timeout=timeout,
            retries=retries
        )
        self.developer_token = developer_token
        self.music_user_token = music_user_token
        self.limit = limit

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.developer_token}",
            "Music-User-Token": self.music_user_token,
        }

    def _extract_api_error(self, data: Any) -> Optional[str]:
        if isinstance(data, dict) and data.get("errors"):
            first = data["errors"][0] or {}
            return first.get("detail") or first.get("title") or "Apple Music error"
        return None

    async def _get_resources(self, endpoint: str, limit: int) -> List[Dict[str, Any]]:
        data = await self._make_request(endpoint, {"limit": limit})
        return (data or {}).get("data") or []

    async def get_heavy_rotation(self) -> List[Dict[str, Any]]:
        # heavy-rotation caps limit at 10
        return await self._get_resources("me/history/heavy-rotation", min(self.limit, 10))

    async def get_recently_played(self) -> List[Dict[str, Any]]:
        return await self._get_resources("me/recent/played/tracks", min(self.limit, 30))

    async def get_library_songs(self) -> List[Dict[str, Any]]:
        return await self._get_resources("me/library/songs", min(self.limit, 100))

    async def fetch_payload(self) -> ServicePayload:
        """
        Collect the history lists used as the substitute top-tracks signal.

        Each list is optional, but at least one must succeed.
        """
        history: List[Dict[str, Any]] = []
        failures = 0

        for name, getter in (
            ("heavy_rotation", self.get_heavy_rotation),
            ("recently_played", self.get_recently_played),
            ("library_songs", self.get_library_songs),
        ):
            try:
                history.extend(await getter())
            except UpstreamServiceError as e:
                failures += 1
                self.logger.warning("Apple Music list unavailable", list_name=name, error=str(e))

        if failures == 3:
            raise UpstreamServiceError(self.service.value, "all history lists failed")

        self.logger.info("Apple Music payload fetched", history_items=len(history))

        return ServicePayload(service=self.service, play_history=history)
