"""Service construction helpers.

Builds the repository service from configuration.
"""

from typing import Optional

from barehub.config.schema import AppConfig
from barehub.core.executor import CommandExecutor, SubprocessExecutor
from barehub.core.lifecycle import RepositoryLifecycleManager
from barehub.core.paths import PathSanitizer
from barehub.introspection import create_introspector
from barehub.service.repository import RepositoryService
from barehub.storage import create_record_store


async def initialize_service(
    config: AppConfig, executor: Optional[CommandExecutor] = None
) -> RepositoryService:
    """Wire lifecycle manager, record store, and introspector.

    Args:
        config: Application configuration
        executor: Command executor (defaults to a SubprocessExecutor using
            ``git.command_timeout``)

    Returns:
        RepositoryService with an initialized record store
    """
    executor = executor or SubprocessExecutor(timeout=config.git.command_timeout)
    sanitizer = PathSanitizer(config.storage.base_directory)

    lifecycle = RepositoryLifecycleManager(
        sanitizer,
        executor,
        git_config=config.git,
        service_user=config.storage.service_user,
    )
    introspector = create_introspector(config, sanitizer=sanitizer, executor=executor)

    store = create_record_store(config.metadata_store)
    await store.initialize()

    return RepositoryService(lifecycle, store, introspector)
