"""Abstract base class for repository record storage.

Why this exists:
- Keeps the record backend (SQLite, in-memory) swappable
- Enables testing the filesystem/record sequencing without a database

How to extend:
1. Subclass RecordStore
2. Implement all abstract methods
3. Register in create_record_store()
"""

from abc import ABC, abstractmethod
from typing import Optional

from barehub.config.schema import MetadataStoreConfig
from barehub.entities import RepositoryRecord


class RecordStore(ABC):
    """Abstract interface for repository record storage."""

    def __init__(self, config: MetadataStoreConfig) -> None:
        """Initialize storage with configuration."""
        self.config = config

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the store (create tables, etc.)."""
        pass

    @abstractmethod
    async def add_record(self, record: RepositoryRecord) -> None:
        """Store a repository record.

        Raises:
            StorageError: If a record with the same name exists or the write fails
        """
        pass

    @abstractmethod
    async def get_record_by_name(self, name: str) -> Optional[RepositoryRecord]:
        """Retrieve a record by repository name.

        Returns:
            RepositoryRecord if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_records(self) -> list[RepositoryRecord]:
        """List all records ordered by name."""
        pass

    @abstractmethod
    async def rename_record(self, old_name: str, new_name: str, path: str) -> Optional[RepositoryRecord]:
        """Rename a record and update its path.

        Returns:
            Updated record, or None if no record has ``old_name``
        """
        pass

    @abstractmethod
    async def delete_record(self, name: str) -> bool:
        """Delete a record.

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close connections and cleanup resources."""
        pass


class StorageError(Exception):
    """Base exception for storage errors."""

    def __init__(self, message: str, storage_type: str, original_error: Exception | None = None):
        self.message = message
        self.storage_type = storage_type
        self.original_error = original_error
        super().__init__(self.message)
