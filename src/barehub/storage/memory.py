"""In-memory record store for testing and development."""

from datetime import datetime, timezone
from typing import Optional

from barehub.config.schema import MetadataStoreConfig
from barehub.entities import RepositoryRecord
from barehub.storage.base import RecordStore, StorageError


class InMemoryRecordStore(RecordStore):
    """Keeps repository records in a dict keyed by name."""

    def __init__(self, config: MetadataStoreConfig) -> None:
        super().__init__(config)
        self.records: dict[str, RepositoryRecord] = {}

    async def initialize(self) -> None:
        pass

    async def add_record(self, record: RepositoryRecord) -> None:
        if record.name in self.records:
            raise StorageError(
                f"Repository record '{record.name}' already exists",
                storage_type="memory",
            )
        self.records[record.name] = record

    async def get_record_by_name(self, name: str) -> Optional[RepositoryRecord]:
        return self.records.get(name)

    async def list_records(self) -> list[RepositoryRecord]:
        return [self.records[name] for name in sorted(self.records)]

    async def rename_record(self, old_name: str, new_name: str, path: str) -> Optional[RepositoryRecord]:
        record = self.records.get(old_name)
        if record is None:
            return None
        if new_name in self.records:
            raise StorageError(
                f"Repository record '{new_name}' already exists",
                storage_type="memory",
            )

        updated = record.model_copy(
            update={"name": new_name, "path": path, "updated_at": datetime.now(timezone.utc)}
        )
        del self.records[old_name]
        self.records[new_name] = updated
        return updated

    async def delete_record(self, name: str) -> bool:
        return self.records.pop(name, None) is not None

    async def close(self) -> None:
        pass
