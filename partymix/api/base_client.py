"""
Base API Client

Unified HTTP request handling, rate limiting and error handling for all
upstream streaming-service clients. Each client is bound to one user's
already-valid session token and knows how to fetch that user's raw
taste payload.
"""

import asyncio
import json
import random
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp
import structlog

from ..errors import UpstreamServiceError
from ..models.profile_models import ServicePayload, ServiceType
from .rate_limiter import RateLimiter

logger = structlog.get_logger(__name__)


class BaseAPIClient(ABC):
    """
    Base HTTP client with unified request handling, rate limiting and retries.

    Subclasses provide the service tag, authentication headers, error
    extraction and ``fetch_payload``.
    """

    service: ServiceType

    def __init__(
        self,
        base_url: str,
        rate_limiter: RateLimiter,
        timeout: int = 10,
        retries: int = 2
    ):
        """
        Initialize base API client.

        Args:
            base_url: Base URL for the API
            rate_limiter: Rate limiter instance for this client
            timeout: Request timeout in seconds
            retries: Retry attempts for retryable failures
        """
        self.base_url = base_url.rstrip('/')
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self.retries = retries
        self.session: Optional[aiohttp.ClientSession] = None

        self.logger = logger.bind(
            service=self.service.value,
            component=type(self).__name__
        )

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        self.logger.debug("API client session started")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.debug("API client session closed")

    @abstractmethod
    def _auth_headers(self) -> Dict[str, str]:
        """Headers carrying the user's session token."""

    @abstractmethod
    def _extract_api_error(self, data: Any) -> Optional[str]:
        """
        Extract API-specific error information from a 200 response body.

        Returns:
            Error message if found, None otherwise
        """

    @abstractmethod
    async def fetch_payload(self) -> ServicePayload:
        """Fetch everything the engine needs from this service."""

    async def fetch(self) -> ServicePayload:
        """
        Fetch the user's payload, opening a session if none is active.

        This is the fetcher interface consumed by the profile service.
        """
        if self.session:
            return await self.fetch_payload()
        async with self:
            return await self.fetch_payload()

    async def _make_request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """
        Make a rate-limited GET request with retries.

        Raises:
            UpstreamServiceError: On non-retryable errors or exhausted retries
        """
        if not self.session:
            raise RuntimeError(
                f"{self.service.value} client not initialized. Use async context manager."
            )

        url = f"{self.base_url}/{endpoint.lstrip('/')}" if endpoint else self.base_url
        request_headers = {**self._auth_headers(), **(headers or {})}
        request_headers.setdefault('User-Agent', f'PartyMix-{self.service.value}/1.0')

        last_error: Optional[str] = None
        for attempt in range(self.retries + 1):
            await self.rate_limiter.wait_if_needed()
            start_time = time.monotonic()
            try:
                async with self.session.get(
                    url,
                    params=params or None,
                    headers=request_headers
                ) as response:
                    if response.status == 200:
                        data = await self._parse_response(response)
                        error_info = self._extract_api_error(data)
                        if error_info:
                            raise UpstreamServiceError(self.service.value, error_info, 200)

                        self.logger.debug(
                            "API request successful",
                            endpoint=endpoint,
                            duration_ms=int((time.monotonic() - start_time) * 1000)
                        )
                        return data

                    if response.status == 429:
                        wait_time = self._retry_after(response, attempt)
                        self.logger.warning(
                            "Rate limited - backing off",
                            endpoint=endpoint,
                            attempt=attempt + 1,
                            wait_time=wait_time
                        )
                        last_error = "rate limited"
                        if attempt < self.retries:
                            await asyncio.sleep(wait_time)
                        continue

                    # Auth and other client errors will not improve on retry
                    if 400 <= response.status < 500:
                        raise UpstreamServiceError(
                            self.service.value,
                            f"client error {response.status} for {endpoint}",
                            response.status
                        )

                    last_error = f"server error {response.status}"
                    self.logger.warning(
                        "Upstream HTTP error",
                        endpoint=endpoint,
                        status=response.status,
                        attempt=attempt + 1
                    )

            except asyncio.TimeoutError:
                last_error = "timeout"
                self.logger.warning("Request timeout", endpoint=endpoint, attempt=attempt + 1)

            except aiohttp.ClientError as e:
                last_error = str(e)
                self.logger.warning(
                    "HTTP client error",
                    endpoint=endpoint,
                    error=str(e),
                    error_type=type(e).__name__,
                    attempt=attempt + 1
                )

            if attempt < self.retries:
                await self._exponential_backoff(attempt)

        raise UpstreamServiceError(
            self.service.value,
            f"request to {endpoint} failed after {self.retries + 1} attempts: {last_error}"
        )

    async def _parse_response(self, response: aiohttp.ClientResponse) -> Any:
        try:
            return await response.json(content_type=None)
        except json.JSONDecodeError as e:
            raise UpstreamServiceError(self.service.value, f"invalid JSON response: {e}")

    def _retry_after(self, response: aiohttp.ClientResponse, attempt: int) -> float:
        retry_after = response.headers.get('Retry-After')
        if retry_after:
            try:
                return min(float(retry_after), 60.0)
            except ValueError:
                pass
        return min(2 ** attempt, 60)

    async def _exponential_backoff(self, attempt: int, base_delay: float = 0.5):
        """Exponential backoff with jitter, capped at 30 seconds."""
        delay = base_delay * (2 ** attempt)
        jitter = random.uniform(0.1, 0.3) * delay
        await asyncio.sleep(min(delay + jitter, 30.0))

    def get_service_info(self) -> Dict[str, Any]:
        return {
            "service": self.service.value,
            "base_url": self.base_url,
            "timeout": self.timeout,
            "retries": self.retries,
            "session_active": self.session is not None,
            "rate_limiter": self.rate_limiter.get_current_usage(),
        }
