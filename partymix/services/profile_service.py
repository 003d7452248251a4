"""
Profile Service for PartyMix

Entry point of the engine: fetches every connected service concurrently,
runs the pipeline components and persists the resulting unified profile.
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

import structlog

from ..api.client_factory import APIClientFactory, ServiceConnection
from ..errors import NoProfileDataError, NoServicesConnectedError
from ..models.config_models import EngineConfig
from ..models.profile_models import (
    ProfileReport,
    ProfileStats,
    ServicePayload,
    ServiceType,
    UnifiedProfile,
)
from ..utils.logging_config import (
    clear_request_context,
    log_error,
    log_performance,
    log_service_fetch,
    set_request_context,
)
from .components.descriptor_aggregator import aggregate_descriptors
from .components.entity_resolver import EntityResolver
from .components.genre_weigher import GenreWeigher
from .components.scoring_engine import ScoringEngine, ScoringPolicy
from .components.source_adapters import adapt_payload
from .profile_store import InMemoryProfileStore, ProfileStore

logger = structlog.get_logger(__name__)


class PayloadFetcher(Protocol):
    """Anything that can fetch one service's payload for one user."""

    async def fetch(self) -> ServicePayload:
        ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProfileService:
    """
    Builds unified taste profiles.

    Collaborators (store, scoring policy, clock) are injected so that a
    generation never reaches into shared global state. Generations for the
    same user are serialized so the store sees writes in completion order.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        store: Optional[ProfileStore] = None,
        policy: Optional[ScoringPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
        client_factory: Optional[APIClientFactory] = None
    ):
        """
        Initialize the profile service.

        Args:
            config: Engine configuration (defaults if not provided)
            store: Profile store receiving every generated profile
            policy: Party-readiness scoring policy
            clock: Returns the generation timestamp
            client_factory: Builds fetchers from service connections
        """
        self.config = config or EngineConfig()
        self.store = store if store is not None else InMemoryProfileStore()
        self.clock = clock or utc_now
        self.client_factory = client_factory

        self.resolver = EntityResolver(self.config)
        self.genre_weigher = GenreWeigher(self.config)
        self.scoring = ScoringEngine(
            policy=policy,
            track_limit=self.config.top_tracks_limit,
            artist_limit=self.config.top_artists_limit
        )

        self._user_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self.logger = logger.bind(service="ProfileService")

        self.logger.info(
            "ProfileService initialized",
            store=type(self.store).__name__,
            policy=type(self.scoring.policy).__name__
        )

    def assemble_profile(
        self,
        user_id: str,
        payloads: Sequence[ServicePayload],
        primary_service: Optional[ServiceType] = None,
        generated_at: Optional[datetime] = None,
        failed_services: Iterable[ServiceType] = ()
    ) -> ProfileReport:
        """
        Build a profile from already-fetched payloads.

        Pure apart from ``generated_at``, which defaults to the service clock.

        Args:
            user_id: Profile owner
            payloads: At most one payload per service
            primary_service: Service whose entities seed merged identities
            generated_at: Generation timestamp
            failed_services: Services excluded before assembly (reported in stats)

        Returns:
            ProfileReport with the profile and its statistics
        """
        sources = [adapt_payload(payload) for payload in payloads]
        resolved = self.resolver.resolve(sources, primary_service)

        audio_features = aggregate_descriptors(resolved.tracks)
        top_genres = self.genre_weigher.top_genres(resolved.artists)
        top_tracks = self.scoring.rank_tracks(resolved.tracks)
        top_artists = self.scoring.rank_artists(resolved.artists)
        party_readiness = self.scoring.party_readiness(
            audio_features, resolved.tracks, resolved.artists
        )

        profile = UnifiedProfile(
            user_id=user_id,
            source_services=tuple(resolved.service_order),
            top_tracks=tuple(track.snapshot() for track in top_tracks),
            top_artists=tuple(artist.snapshot() for artist in top_artists),
            top_genres=tuple(top_genres),
            audio_features=audio_features,
            party_readiness=party_readiness,
            generated_at=generated_at or self.clock(),
        )
        stats = ProfileStats(
            total_tracks=len(profile.top_tracks),
            total_artists=len(profile.top_artists),
            total_genres=len(profile.top_genres),
            connected_services=profile.source_services,
            cross_service_tracks=self.scoring.count_cross_service(resolved.tracks),
            failed_services=tuple(failed_services),
        )
        return ProfileReport(profile=profile, stats=stats)

    async def _fetch_one(
        self,
        service: ServiceType,
        fetcher: PayloadFetcher
    ) -> Optional[ServicePayload]:
        """Fetch one service; any failure excludes the service and returns None."""
        start_time = time.monotonic()
        try:
            payload = await asyncio.wait_for(
                fetcher.fetch(), timeout=self.config.fetch_timeout_seconds
            )
        except asyncio.TimeoutError:
            log_service_fetch(
                service.value,
                "timeout",
                time.monotonic() - start_time,
                timeout_seconds=self.config.fetch_timeout_seconds
            )
            return None
        except Exception as e:
            log_service_fetch(
                service.value,
                "failed",
                time.monotonic() - start_time,
                error_type=type(e).__name__,
                error=str(e)
            )
            return None

        if not isinstance(payload, ServicePayload) or payload.service != service:
            payload_service = getattr(payload, "service", None)
            log_service_fetch(
                service.value,
                "failed",
                time.monotonic() - start_time,
                error="unexpected payload",
                payload_type=type(payload).__name__,
                payload_service=str(getattr(payload_service, "value", payload_service))
            )
            return None

        empty = not (payload.tracks or payload.artists or payload.play_history)
        log_service_fetch(service.value, "empty" if empty else "ok", time.monotonic() - start_time)
        return payload

    async def fetch_payloads(
        self,
        fetchers: Mapping[ServiceType, PayloadFetcher]
    ) -> Tuple[List[ServicePayload], List[ServiceType]]:
        """
        Fetch every service concurrently.

        Returns:
            Tuple of (successful payloads, failed services)
        """
        services = list(fetchers)
        results = await asyncio.gather(
            *(self._fetch_one(service, fetchers[service]) for service in services)
        )

        payloads = [payload for payload in results if payload is not None]
        failed = [service for service, payload in zip(services, results) if payload is None]
        return payloads, failed

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        return self._user_locks.setdefault(user_id, asyncio.Lock())

    def _release_lock(self, user_id: str) -> None:
        # The entry lives while any generation for this user holds or awaits it
        self._lock_users[user_id] -= 1
        if not self._lock_users[user_id]:
            del self._lock_users[user_id]
            del self._user_locks[user_id]

    def _persist(self, profile: UnifiedProfile) -> None:
        try:
            self.store.put(profile.user_id, profile.to_dict())
        except Exception as e:
            log_error(e, {"operation": "store_profile", "user_id": profile.user_id})

    async def generate_profile_report(
        self,
        user_id: str,
        fetchers: Mapping[ServiceType, PayloadFetcher],
        primary_service: Optional[ServiceType] = None
    ) -> ProfileReport:
        """
        Fetch, assemble and persist a profile, returning it with its stats.

        Raises:
            NoServicesConnectedError: If no fetchers are given
            NoProfileDataError: If every connected service failed
        """
        if not fetchers:
            raise NoServicesConnectedError(user_id)

        set_request_context(request_id=uuid.uuid4().hex, user_id=user_id)
        start_time = time.monotonic()
        lock = self._lock_for(user_id)
        try:
            async with lock:
                payloads, failed = await self.fetch_payloads(fetchers)
                if not payloads:
                    raise NoProfileDataError(user_id, failed)

                report = self.assemble_profile(
                    user_id,
                    payloads,
                    primary_service=primary_service,
                    failed_services=failed
                )
                self._persist(report.profile)

            log_performance(
                "generate_profile",
                time.monotonic() - start_time,
                services=len(payloads),
                failed_services=len(failed)
            )
            self.logger.info(
                "Unified profile generated",
                **report.stats.to_dict(),
                party_readiness=report.profile.party_readiness
            )
            return report
        finally:
            self._release_lock(user_id)
            clear_request_context()

    async def generate_unified_profile(
        self,
        user_id: str,
        fetchers: Mapping[ServiceType, PayloadFetcher],
        primary_service: Optional[ServiceType] = None
    ) -> UnifiedProfile:
        report = await self.generate_profile_report(user_id, fetchers, primary_service)
        return report.profile

    async def generate_from_connections(
        self,
        user_id: str,
        connections: Sequence[ServiceConnection],
        primary_service: Optional[ServiceType] = None
    ) -> ProfileReport:
        """
        Build clients for the user's connections and generate a profile.

        Connections that cannot produce a client count as failed services.
        """
        if not connections:
            raise NoServicesConnectedError(user_id)

        factory = self.client_factory or APIClientFactory(self.config)
        fetchers = factory.create_fetchers(connections)
        if not fetchers:
            raise NoProfileDataError(user_id, [c.service for c in connections])

        return await self.generate_profile_report(user_id, fetchers, primary_service)
