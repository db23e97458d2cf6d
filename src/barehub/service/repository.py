"""Repository service - filesystem lifecycle plus persisted records.

Sequencing for every mutating call:
1. Perform the filesystem operation
2. Write the record only if step 1 succeeded
3. If the record write fails, undo step 1 with the inverse operation
"""

from typing import Optional

from barehub.core.errors import RepositoryError
from barehub.core.lifecycle import RepositoryLifecycleManager
from barehub.entities import FileContent, RepositoryRecord, RepositorySnapshot
from barehub.introspection.base import TreeIntrospector
from barehub.observability.logging import get_logger
from barehub.storage.base import RecordStore, StorageError

logger = get_logger(__name__)


class RepositoryService:
    """Coordinates the lifecycle manager, record store, and introspector."""

    def __init__(
        self,
        lifecycle: RepositoryLifecycleManager,
        store: RecordStore,
        introspector: TreeIntrospector,
    ):
        """Initialize repository service.

        Args:
            lifecycle: Creates, renames, and deletes bare repositories
            store: Persists repository records
            introspector: Reads repository trees
        """
        self.lifecycle = lifecycle
        self.store = store
        self.introspector = introspector

    async def create_repository(self, name: str, description: Optional[str] = None) -> RepositoryRecord:
        """Create a bare repository and its record.

        Raises:
            RepositoryError: If the filesystem step fails
            StorageError: If the record cannot be written; the new repository
                has been deleted again
        """
        path = await self.lifecycle.create(name)
        record = RepositoryRecord(name=name, path=str(path), description=description)

        try:
            await self.store.add_record(record)
        except StorageError as e:
            logger.error("repository_record_add_failed", name=name, error=str(e))
            await self._compensate("delete", self.lifecycle.delete(name), name=name)
            raise

        logger.info("repository_registered", name=name, repository_id=str(record.id))
        return record

    async def rename_repository(self, old_name: str, new_name: str) -> RepositoryRecord:
        """Rename a repository on disk and in its record.

        A repository without a record gets one under the new name.

        Raises:
            RepositoryError: If the filesystem step fails
            StorageError: If the record cannot be updated; the repository has
                been renamed back
        """
        new_path = await self.lifecycle.rename(old_name, new_name)

        try:
            record = await self.store.rename_record(old_name, new_name, str(new_path))
            if record is None:
                logger.warning("repository_record_missing", name=old_name)
                record = RepositoryRecord(name=new_name, path=str(new_path))
                await self.store.add_record(record)
        except StorageError as e:
            logger.error("repository_record_rename_failed", old_name=old_name, new_name=new_name, error=str(e))
            await self._compensate(
                "rename", self.lifecycle.rename(new_name, old_name), old_name=old_name, new_name=new_name
            )
            raise

        await self.introspector.invalidate(old_name)
        return record

    async def delete_repository(self, name: str) -> None:
        """Delete a repository from disk, then its record.

        Deletion has no inverse; a record failure after the filesystem
        removal is raised with the repository already gone.
        """
        await self.lifecycle.delete(name)
        await self.introspector.invalidate(name)

        deleted = await self.store.delete_record(name)
        if not deleted:
            logger.warning("repository_record_missing", name=name)

    async def get_repository(self, name: str) -> Optional[RepositoryRecord]:
        return await self.store.get_record_by_name(name)

    async def list_repositories(self) -> list[RepositoryRecord]:
        return await self.store.list_records()

    async def sync_records(self) -> list[str]:
        """Remove records whose repository no longer exists on disk.

        Returns:
            Names of removed records
        """
        on_disk = set(await self.lifecycle.list_repositories())
        removed = []

        for record in await self.store.list_records():
            if record.name not in on_disk:
                await self.store.delete_record(record.name)
                removed.append(record.name)
                logger.info("stale_repository_record_removed", name=record.name)

        return removed

    async def snapshot(self, name: str) -> RepositorySnapshot:
        return await self.introspector.snapshot(name)

    async def read_file(self, name: str, relative_path: str) -> FileContent:
        return await self.introspector.read_file(name, relative_path)

    async def close(self) -> None:
        await self.store.close()
        await self.introspector.close()

    async def _compensate(self, action: str, operation, **context) -> None:
        try:
            await operation
            logger.info("repository_compensated", action=action, **context)
        except RepositoryError as e:
            logger.error("repository_compensation_failed", action=action, error=str(e), **context)
