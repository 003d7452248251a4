"""
PartyMix Errors

Exception types raised across the engine. Upstream failures are recovered
by excluding the failing service; only the "no data at all" conditions
reach callers.
"""

from typing import Optional


class PartyMixError(Exception):
    """Base class for all PartyMix errors."""


class NoServicesConnectedError(PartyMixError):
    """The user has no connected streaming service."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No streaming services connected for user {user_id}")


class NoProfileDataError(PartyMixError):
    """Every connected service failed, so no profile could be built."""

    def __init__(self, user_id: str, failed_services=()):
        self.user_id = user_id
        self.failed_services = tuple(failed_services)
        names = ", ".join(s.value for s in self.failed_services) or "none"
        super().__init__(
            f"No profile data available for user {user_id} (failed: {names})"
        )


class UpstreamServiceError(PartyMixError):
    """An upstream streaming-service call failed."""

    def __init__(self, service_name: str, message: str, status: Optional[int] = None):
        self.service_name = service_name
        self.status = status
        super().__init__(f"{service_name}: {message}")
