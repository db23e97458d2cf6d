"""Storage layer: repository record stores."""

from barehub.config.schema import MetadataStoreConfig
from barehub.storage.base import RecordStore, StorageError


def create_record_store(config: MetadataStoreConfig) -> RecordStore:
    """Factory function to create record stores based on configuration.

    Args:
        config: Record store configuration with store_type

    Returns:
        Uninitialized record store; call ``await store.initialize()``

    Raises:
        ValueError: If store_type is unknown
        StorageError: If backend dependencies are missing

    Example:
        store = create_record_store(MetadataStoreConfig(store_type="memory"))
        await store.initialize()
    """
    store_type = config.store_type.value

    if store_type == "memory":
        from barehub.storage.memory import InMemoryRecordStore

        return InMemoryRecordStore(config)

    elif store_type == "sqlite":
        try:
            from barehub.storage.sqlite import SQLiteRecordStore

            return SQLiteRecordStore(config)
        except ImportError as e:
            raise StorageError(
                message=(
                    "SQLite record store requires the aiosqlite package. "
                    "Install with: pip install aiosqlite"
                ),
                storage_type="sqlite",
                original_error=e,
            )

    else:
        raise ValueError(
            f"Unknown record store type: '{store_type}'. "
            f"Supported types: memory, sqlite"
        )


__all__ = [
    "RecordStore",
    "StorageError",
    "create_record_store",
]
