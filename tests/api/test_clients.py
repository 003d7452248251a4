"""
Tests for upstream API clients.

Requests are mocked at the session or ``_make_request`` level so no
network traffic happens.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, Mock, patch

from partymix.api import (
    APIClientFactory,
    AppleMusicClient,
    LastFmClient,
    RateLimiter,
    ServiceConnection,
    SpotifyClient,
)
from partymix.errors import UpstreamServiceError
from partymix.models import EngineConfig, ServiceType


def mock_response(status=200, data=None, headers=None):
    response = Mock()
    response.status = status
    response.headers = headers or {}
    response.json = AsyncMock(return_value=data)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)
    return context


def session_with(*responses):
    session = Mock()
    session.get = Mock(side_effect=list(responses))
    return session


@pytest.fixture
def spotify_client():
    return SpotifyClient(access_token="user-token", rate_limiter=RateLimiter(1000), retries=2)


class TestBaseRequestHandling:
    """Test retry and error handling in _make_request."""

    @pytest.mark.asyncio
    async def test_success_returns_body_and_sends_auth(self, spotify_client):
        spotify_client.session = session_with(mock_response(data={"items": []}))

        data = await spotify_client._make_request("me/top/tracks", {"limit": 5})

        assert data == {"items": []}
        _, kwargs = spotify_client.session.get.call_args
        assert kwargs["headers"]["Authorization"] == "Bearer user-token"
        assert kwargs["params"] == {"limit": 5}

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, spotify_client):
        spotify_client.session = session_with(
            mock_response(status=503),
            mock_response(data={"items": [{"id": "sp1"}]}),
        )

        with patch.object(spotify_client, "_exponential_backoff", AsyncMock()) as backoff:
            data = await spotify_client._make_request("me/top/tracks")

        assert data == {"items": [{"id": "sp1"}]}
        backoff.assert_awaited_once_with(0)

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, spotify_client):
        spotify_client.session = session_with(mock_response(status=401))

        with pytest.raises(UpstreamServiceError) as exc_info:
            await spotify_client._make_request("me/top/tracks")

        assert exc_info.value.status == 401
        assert spotify_client.session.get.call_count == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, spotify_client):
        spotify_client.session = session_with(*[mock_response(status=500) for _ in range(3)])

        with patch.object(spotify_client, "_exponential_backoff", AsyncMock()):
            with pytest.raises(UpstreamServiceError, match="after 3 attempts"):
                await spotify_client._make_request("me/top/tracks")

    @pytest.mark.asyncio
    async def test_rate_limited_without_retries(self):
        client = SpotifyClient(access_token="t", rate_limiter=RateLimiter(1000), retries=0)
        client.session = session_with(mock_response(status=429, headers={"Retry-After": "3"}))

        with pytest.raises(UpstreamServiceError, match="rate limited"):
            await client._make_request("me/top/tracks")

    @pytest.mark.asyncio
    async def test_error_body_on_200(self, spotify_client):
        spotify_client.session = session_with(
            mock_response(data={"error": {"status": 401, "message": "The access token expired"}})
        )

        with pytest.raises(UpstreamServiceError, match="access token expired"):
            await spotify_client._make_request("me/top/tracks")

    @pytest.mark.asyncio
    async def test_request_without_session(self, spotify_client):
        with pytest.raises(RuntimeError):
            await spotify_client._make_request("me/top/tracks")

    def test_retry_after_header(self, spotify_client):
        response = Mock(headers={"Retry-After": "120"})

        assert spotify_client._retry_after(response, 0) == 60.0
        assert spotify_client._retry_after(Mock(headers={}), 2) == 4


class TestSpotifyClient:
    """Test SpotifyClient payload collection."""

    @pytest.mark.asyncio
    async def test_fetch_payload(self, spotify_client):
        responses = {
            "me/top/tracks": {"items": [{"id": "sp1"}, {"id": "sp2"}]},
            "me/top/artists": {"items": [{"id": "ar1", "name": "Daft Punk"}]},
            "audio-features": {"audio_features": [{"id": "sp1", "energy": 0.9}, None]},
        }

        async def fake_request(endpoint, params=None, headers=None):
            return responses[endpoint]

        with patch.object(spotify_client, "_make_request", AsyncMock(side_effect=fake_request)) as request:
            payload = await spotify_client.fetch_payload()

        assert payload.service == ServiceType.SPOTIFY
        assert len(payload.tracks) == 2
        assert payload.audio_features == [{"id": "sp1", "energy": 0.9}]
        request.assert_any_await("audio-features", {"ids": "sp1,sp2"})

    @pytest.mark.asyncio
    async def test_audio_feature_failure_keeps_service(self, spotify_client):
        async def fake_request(endpoint, params=None, headers=None):
            if endpoint == "audio-features":
                raise UpstreamServiceError("spotify", "client error 403", 403)
            return {"items": [{"id": "sp1"}]}

        with patch.object(spotify_client, "_make_request", AsyncMock(side_effect=fake_request)):
            payload = await spotify_client.fetch_payload()

        assert payload.tracks == [{"id": "sp1"}]
        assert payload.audio_features == []

    @pytest.mark.asyncio
    async def test_audio_features_batched(self, spotify_client):
        request = AsyncMock(return_value={"audio_features": []})
        with patch.object(spotify_client, "_make_request", request):
            await spotify_client.get_audio_features([f"id{i}" for i in range(150)])

        assert request.await_count == 2

    @pytest.mark.asyncio
    async def test_fetch_opens_and_closes_session(self, spotify_client):
        with patch.object(spotify_client, "fetch_payload", AsyncMock(return_value="payload")), \
             patch("partymix.api.base_client.aiohttp.ClientSession") as session_class:
            session_class.return_value.close = AsyncMock()
            result = await spotify_client.fetch()

        assert result == "payload"
        session_class.return_value.close.assert_awaited_once()
        assert spotify_client.session is None


class TestAppleMusicClient:
    """Test AppleMusicClient payload collection."""

    @pytest.fixture
    def apple_client(self):
        return AppleMusicClient(
            developer_token="dev", music_user_token="mut", rate_limiter=RateLimiter(1000)
        )

    def test_auth_headers(self, apple_client):
        assert apple_client._auth_headers() == {
            "Authorization": "Bearer dev",
            "Music-User-Token": "mut",
        }

    def test_error_detail_extracted(self, apple_client):
        data = {"errors": [{"title": "Unauthorized", "detail": "Invalid user token"}]}

        assert apple_client._extract_api_error(data) == "Invalid user token"

    @pytest.mark.asyncio
    async def test_partial_history_is_enough(self, apple_client):
        with patch.object(apple_client, "get_heavy_rotation", AsyncMock(return_value=[{"id": "a"}])), \
             patch.object(apple_client, "get_recently_played",
                          AsyncMock(side_effect=UpstreamServiceError("apple-music", "500"))), \
             patch.object(apple_client, "get_library_songs", AsyncMock(return_value=[{"id": "b"}])):
            payload = await apple_client.fetch_payload()

        assert payload.play_history == [{"id": "a"}, {"id": "b"}]

    @pytest.mark.asyncio
    async def test_all_history_lists_failing_raises(self, apple_client):
        failing = AsyncMock(side_effect=UpstreamServiceError("apple-music", "500"))
        with patch.object(apple_client, "get_heavy_rotation", failing), \
             patch.object(apple_client, "get_recently_played", failing), \
             patch.object(apple_client, "get_library_songs", failing):
            with pytest.raises(UpstreamServiceError):
                await apple_client.fetch_payload()


class TestLastFmClient:
    """Test LastFmClient payload collection."""

    @pytest.mark.asyncio
    async def test_fetch_payload(self):
        client = LastFmClient(api_key="key", username="dj", rate_limiter=RateLimiter(1000))
        responses = {
            "user.getTopTracks": {"toptracks": {"track": [{"name": "Song"}]}},
            "user.getTopArtists": {"topartists": {"artist": [{"name": "Artist"}]}},
        }

        async def fake_request(endpoint, params=None, headers=None):
            assert params["user"] == "dj"
            assert params["api_key"] == "key"
            return responses[params["method"]]

        with patch.object(client, "_make_request", AsyncMock(side_effect=fake_request)):
            payload = await client.fetch_payload()

        assert payload.service == ServiceType.LASTFM
        assert payload.tracks == [{"name": "Song"}]
        assert payload.artists == [{"name": "Artist"}]

    def test_error_body(self):
        client = LastFmClient(api_key="key", username="dj")

        assert client._extract_api_error({"error": 6, "message": "User not found"}) == "User not found"
        assert client._extract_api_error({"toptracks": {}}) is None


class TestAPIClientFactory:
    """Test client creation per service."""

    @pytest.fixture
    def factory(self):
        return APIClientFactory(EngineConfig(lastfm_api_key="key", apple_developer_token="dev"))

    def test_creates_client_per_service(self, factory):
        spotify = factory.create_client(ServiceConnection(ServiceType.SPOTIFY, token="t"))
        apple = factory.create_client(ServiceConnection(ServiceType.APPLE_MUSIC, token="mut"))
        lastfm = factory.create_client(ServiceConnection(ServiceType.LASTFM, username="dj"))

        assert isinstance(spotify, SpotifyClient)
        assert isinstance(apple, AppleMusicClient)
        assert isinstance(lastfm, LastFmClient)
        assert lastfm.username == "dj"

    def test_rate_limiters_shared_per_service(self, factory):
        first = factory.create_client(ServiceConnection(ServiceType.SPOTIFY, token="a"))
        second = factory.create_client(ServiceConnection(ServiceType.SPOTIFY, token="b"))

        assert first.rate_limiter is second.rate_limiter
        assert set(factory.get_rate_limiter_stats()) == {"spotify"}

        first.rate_limiter.total_requests = 7
        factory.reset_rate_limiters()
        assert factory.get_rate_limiter_stats()["spotify"]["total_requests"] == 0

    def test_missing_credentials(self):
        factory = APIClientFactory(EngineConfig())

        with pytest.raises(ValueError):
            factory.create_client(ServiceConnection(ServiceType.SPOTIFY))
        with pytest.raises(ValueError):
            factory.create_client(ServiceConnection(ServiceType.LASTFM, username="dj"))
        with pytest.raises(ValueError):
            factory.create_client(ServiceConnection(ServiceType.APPLE_MUSIC, token="mut"))

    def test_create_fetchers_skips_unusable_connections(self, factory):
        fetchers = factory.create_fetchers([
            ServiceConnection(ServiceType.SPOTIFY, token="t"),
            ServiceConnection(ServiceType.LASTFM),
        ])

        assert list(fetchers) == [ServiceType.SPOTIFY]


class TestRateLimiter:
    """Test the token bucket."""

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            RateLimiter(0)

    @pytest.mark.asyncio
    async def test_burst_consumes_tokens(self):
        limiter = RateLimiter(calls_per_second=1000, burst_size=3)

        for _ in range(3):
            await limiter.wait_if_needed()

        assert limiter.get_current_usage()["total_requests"] == 3
        limiter.reset()
        assert limiter.get_current_usage()["total_requests"] == 0

    def test_service_info(self):
        client = LastFmClient(api_key="key", username="dj", rate_limiter=RateLimiter(2))

        info = client.get_service_info()

        assert info["service"] == "lastfm"
        assert info["session_active"] is False
        assert info["rate_limiter"]["calls_per_second"] == 2
