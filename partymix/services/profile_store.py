"""
Profile Store

Persistence for generated profiles. One record per user, overwritten on
every generation.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import structlog
from diskcache import Cache

from ..models.config_models import EngineConfig

logger = structlog.get_logger(__name__)


class ProfileStore(Protocol):
    """Storage collaborator injected into the ProfileService."""

    def put(self, user_id: str, record: Dict[str, Any]) -> None:
        ...

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        ...


class InMemoryProfileStore:
    """Dict-backed store for tests and single-process use."""

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}

    def put(self, user_id: str, record: Dict[str, Any]) -> None:
        self._records[user_id] = record

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._records.get(user_id)

    def __len__(self) -> int:
        return len(self._records)


class DiskProfileStore:
    """
    diskcache-backed profile store.

    Records never expire; a new generation replaces the previous record for
    the same user.
    """

    KEY_PREFIX = "profile:"

    def __init__(self, directory: str = "data/profiles"):
        """
        Initialize the disk store.

        Args:
            directory: Directory for the underlying diskcache
        """
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.cache = Cache(str(self.directory))

        logger.info("Profile store initialized", directory=str(self.directory))

    @classmethod
    def from_config(cls, config: EngineConfig) -> "DiskProfileStore":
        return cls(directory=config.profile_store_directory)

    def _key(self, user_id: str) -> str:
        return f"{self.KEY_PREFIX}{user_id}"

    def put(self, user_id: str, record: Dict[str, Any]) -> None:
        self.cache.set(self._key(user_id), record)
        logger.debug("Profile stored", user_id=user_id)

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        record = self.cache.get(self._key(user_id))
        if record is None:
            logger.debug("Profile not found", user_id=user_id)
        return record

    def delete(self, user_id: str) -> bool:
        return bool(self.cache.delete(self._key(user_id)))

    def get_stats(self) -> Dict[str, Any]:
        hits, misses = self.cache.stats()
        return {
            "directory": str(self.directory),
            "profiles": len(self.cache),
            "size_bytes": self.cache.volume(),
            "hits": hits,
            "misses": misses,
        }

    def close(self) -> None:
        self.cache.close()
