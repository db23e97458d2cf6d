"""Unit tests for repository record stores."""

import pytest

from barehub.config.schema import MetadataStoreConfig, MetadataStoreType
from barehub.entities import RepositoryRecord
from barehub.storage import StorageError, create_record_store
from barehub.storage.memory import InMemoryRecordStore
from barehub.storage.sqlite import SQLiteRecordStore


@pytest.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
    """Initialized record store of each backend."""
    config = MetadataStoreConfig(
        store_type=request.param,
        connection_string=f"sqlite:///{tmp_path / 'db' / 'barehub.db'}",
    )
    store = create_record_store(config)
    await store.initialize()
    yield store
    await store.close()


def _record(name: str, description: str | None = None) -> RepositoryRecord:
    return RepositoryRecord(name=name, path=f"/srv/git/{name}.git", description=description)


@pytest.mark.asyncio
class TestRecordStore:
    """Behaviour shared by every RecordStore backend."""

    async def test_add_and_get(self, store):
        record = _record("alpha", "first")
        await store.add_record(record)

        loaded = await store.get_record_by_name("alpha")

        assert loaded is not None
        assert loaded.id == record.id
        assert loaded.path == "/srv/git/alpha.git"
        assert loaded.description == "first"
        assert loaded.created_at == record.created_at

    async def test_get_missing(self, store):
        assert await store.get_record_by_name("missing") is None

    async def test_duplicate_name_fails(self, store):
        await store.add_record(_record("alpha"))

        with pytest.raises(StorageError):
            await store.add_record(_record("alpha"))

    async def test_list_is_sorted(self, store):
        for name in ("zeta", "alpha", "mid"):
            await store.add_record(_record(name))

        names = [record.name for record in await store.list_records()]

        assert names == ["alpha", "mid", "zeta"]

    async def test_rename(self, store):
        record = _record("alpha")
        await store.add_record(record)

        renamed = await store.rename_record("alpha", "beta", "/srv/git/beta.git")

        assert renamed is not None
        assert renamed.id == record.id
        assert renamed.name == "beta"
        assert renamed.path == "/srv/git/beta.git"
        assert renamed.updated_at >= record.updated_at
        assert await store.get_record_by_name("alpha") is None

    async def test_rename_missing_returns_none(self, store):
        assert await store.rename_record("ghost", "beta", "/srv/git/beta.git") is None

    async def test_rename_onto_existing_fails(self, store):
        await store.add_record(_record("alpha"))
        await store.add_record(_record("beta"))

        with pytest.raises(StorageError):
            await store.rename_record("alpha", "beta", "/srv/git/beta.git")

        assert await store.get_record_by_name("alpha") is not None

    async def test_delete(self, store):
        await store.add_record(_record("alpha"))

        assert await store.delete_record("alpha") is True
        assert await store.delete_record("alpha") is False
        assert await store.list_records() == []


def test_factory_selects_backend(tmp_path):
    memory = create_record_store(MetadataStoreConfig(store_type=MetadataStoreType.MEMORY))
    sqlite = create_record_store(
        MetadataStoreConfig(store_type=MetadataStoreType.SQLITE, connection_string=f"sqlite:///{tmp_path / 'x.db'}")
    )

    assert isinstance(memory, InMemoryRecordStore)
    assert isinstance(sqlite, SQLiteRecordStore)
    assert sqlite.db_path == str(tmp_path / "x.db")


@pytest.mark.asyncio
async def test_sqlite_requires_initialize(tmp_path):
    store = SQLiteRecordStore(MetadataStoreConfig(connection_string=f"sqlite:///{tmp_path / 'x.db'}"))

    with pytest.raises(StorageError, match="not initialized"):
        await store.list_records()


@pytest.mark.asyncio
async def test_sqlite_persists_across_connections(tmp_path):
    config = MetadataStoreConfig(connection_string=f"sqlite:///{tmp_path / 'barehub.db'}")

    first = SQLiteRecordStore(config)
    await first.initialize()
    await first.add_record(_record("alpha"))
    await first.close()

    second = SQLiteRecordStore(config)
    await second.initialize()
    try:
        assert [record.name for record in await second.list_records()] == ["alpha"]
    finally:
        await second.close()
