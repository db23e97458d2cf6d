"""SQLite storage implementation for repository records.

Uses aiosqlite for async operations.
"""

import os
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import aiosqlite

from barehub.config.schema import MetadataStoreConfig
from barehub.entities import RepositoryRecord
from barehub.storage.base import RecordStore, StorageError


class SQLiteRecordStore(RecordStore):
    """SQLite record store implementation."""

    def __init__(self, config: MetadataStoreConfig) -> None:
        """Initialize SQLite record store."""
        super().__init__(config)
        conn_str = config.connection_string
        if conn_str.startswith("sqlite:///"):
            conn_str = conn_str.replace("sqlite:///", "", 1)
        self.db_path = os.path.expanduser(conn_str)

        self.connection: Optional[aiosqlite.Connection] = None

    async def initialize(self) -> None:
        """Initialize the store (create tables)."""
        try:
            if self.db_path != ":memory:":
                os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)

            self.connection = await aiosqlite.connect(self.db_path)
            self.connection.row_factory = aiosqlite.Row

            await self.connection.execute("""
                CREATE TABLE IF NOT EXISTS repositories (
                    id TEXT PRIMARY KEY,
                    name TEXT UNIQUE NOT NULL,
                    path TEXT NOT NULL,
                    description TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            await self.connection.execute(
                "CREATE INDEX IF NOT EXISTS idx_repositories_name ON repositories(name)"
            )
            await self.connection.commit()

        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite record store: {e}",
                storage_type="sqlite",
                original_error=e,
            )

    def _require_connection(self) -> aiosqlite.Connection:
        if not self.connection:
            raise StorageError("Database not initialized", storage_type="sqlite")
        return self.connection

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> RepositoryRecord:
        return RepositoryRecord(
            id=UUID(row["id"]),
            name=row["name"],
            path=row["path"],
            description=row["description"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    async def add_record(self, record: RepositoryRecord) -> None:
        """Store a repository record."""
        connection = self._require_connection()

        try:
            await connection.execute(
                """
                INSERT INTO repositories (id, name, path, description, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    str(record.id),
                    record.name,
                    record.path,
                    record.description,
                    record.created_at.isoformat(),
                    record.updated_at.isoformat(),
                ),
            )
            await connection.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to add repository record: {e}",
                storage_type="sqlite",
                original_error=e,
            )

    async def get_record_by_name(self, name: str) -> Optional[RepositoryRecord]:
        """Retrieve a record by name."""
        connection = self._require_connection()

        try:
            cursor = await connection.execute(
                "SELECT * FROM repositories WHERE name = ?",
                (name,),
            )
            row = await cursor.fetchone()
            return self._row_to_record(row) if row else None
        except Exception as e:
            raise StorageError(
                f"Failed to get repository record: {e}",
                storage_type="sqlite",
                original_error=e,
            )

    async def list_records(self) -> list[RepositoryRecord]:
        """List all records."""
        connection = self._require_connection()

        try:
            cursor = await connection.execute("SELECT * FROM repositories ORDER BY name")
            rows = await cursor.fetchall()
            return [self._row_to_record(row) for row in rows]
        except Exception as e:
            raise StorageError(
                f"Failed to list repository records: {e}",
                storage_type="sqlite",
                original_error=e,
            )

    async def rename_record(self, old_name: str, new_name: str, path: str) -> Optional[RepositoryRecord]:
        """Rename a record and update its path."""
        connection = self._require_connection()

        try:
            cursor = await connection.execute(
                "UPDATE repositories SET name = ?, path = ?, updated_at = ? WHERE name = ?",
                (new_name, path, datetime.now(timezone.utc).isoformat(), old_name),
            )
            await connection.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to rename repository record: {e}",
                storage_type="sqlite",
                original_error=e,
            )

        if cursor.rowcount == 0:
            return None
        return await self.get_record_by_name(new_name)

    async def delete_record(self, name: str) -> bool:
        """Delete a record."""
        connection = self._require_connection()

        try:
            cursor = await connection.execute(
                "DELETE FROM repositories WHERE name = ?",
                (name,),
            )
            await connection.commit()
            return cursor.rowcount > 0
        except Exception as e:
            raise StorageError(
                f"Failed to delete repository record: {e}",
                storage_type="sqlite",
                original_error=e,
            )

    async def close(self) -> None:
        """Close database connection."""
        if self.connection:
            await self.connection.close()
            self.connection = None
