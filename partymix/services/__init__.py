"""
Services Module

Profile generation service, its persistence layer and pipeline components.
"""

from .profile_service import PayloadFetcher, ProfileService
from .profile_store import DiskProfileStore, InMemoryProfileStore, ProfileStore

__all__ = [
    "ProfileService",
    "PayloadFetcher",
    "ProfileStore",
    "InMemoryProfileStore",
    "DiskProfileStore",
]
