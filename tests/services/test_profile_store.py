"""
Tests for profile stores.
"""

import pytest

from partymix.models import EngineConfig
from partymix.services.profile_store import DiskProfileStore, InMemoryProfileStore


@pytest.fixture
def disk_store(tmp_path):
    store = DiskProfileStore(directory=str(tmp_path / "profiles"))
    yield store
    store.close()


class TestInMemoryProfileStore:
    """Test the dict-backed store."""

    def test_put_overwrites(self):
        store = InMemoryProfileStore()

        store.put("user-1", {"party_readiness": 10})
        store.put("user-1", {"party_readiness": 70})

        assert store.get("user-1") == {"party_readiness": 70}
        assert len(store) == 1

    def test_missing_user(self):
        assert InMemoryProfileStore().get("nobody") is None


class TestDiskProfileStore:
    """Test the diskcache-backed store."""

    def test_round_trip(self, disk_store):
        record = {"user_id": "user-1", "top_genres": ["electronic"], "party_readiness": 66}

        disk_store.put("user-1", record)

        assert disk_store.get("user-1") == record

    def test_overwrite_and_delete(self, disk_store):
        disk_store.put("user-1", {"party_readiness": 1})
        disk_store.put("user-1", {"party_readiness": 2})

        assert disk_store.get("user-1") == {"party_readiness": 2}
        assert disk_store.delete("user-1") is True
        assert disk_store.get("user-1") is None

    def test_persists_across_instances(self, tmp_path):
        directory = str(tmp_path / "profiles")
        first = DiskProfileStore(directory=directory)
        first.put("user-1", {"party_readiness": 42})
        first.close()

        second = DiskProfileStore(directory=directory)
        try:
            assert second.get("user-1") == {"party_readiness": 42}
        finally:
            second.close()

    def test_stats(self, disk_store):
        disk_store.put("user-1", {})

        stats = disk_store.get_stats()

        assert stats["profiles"] == 1
        assert "size_bytes" in stats

    def test_from_config(self, tmp_path):
        config = EngineConfig(profile_store_directory=str(tmp_path / "configured"))

        store = DiskProfileStore.from_config(config)
        try:
            assert store.directory == tmp_path / "configured"
            assert store.directory.is_dir()
        finally:
            store.close()
