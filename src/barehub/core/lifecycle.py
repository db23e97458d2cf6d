"""Bare repository lifecycle on disk.

Provides create, rename, and delete for bare repositories stored as
``{base_directory}/{name}.git``:
- Creating runs ``git init --bare`` and rolls back on failure
- Ownership and receive configuration are best-effort after create
- Operations on one name are serialized by a per-name lock
"""

import asyncio
import os
import shutil
import weakref
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from barehub.config.schema import GitConfig
from barehub.core.compensation import CompensationStack, RemoveDirectory, RemoveEmptyDirectories
from barehub.core.errors import (
    AlreadyExistsError,
    FilesystemError,
    InvalidNameError,
    OwnershipError,
    RepositoryNotFoundError,
    SubprocessError,
)
from barehub.core.executor import CommandExecutor
from barehub.core.paths import REPOSITORY_SUFFIX, PathSanitizer
from barehub.observability.logging import get_logger

logger = get_logger(__name__)


class RepositoryLifecycleManager:
    """Creates, renames, and deletes bare repositories under a base directory.

    Each call is single-attempt. Fatal failures raise with the OS error or
    git stderr in the message; ownership and configuration failures after a
    successful ``git init`` are only logged.
    """

    def __init__(
        self,
        sanitizer: PathSanitizer,
        executor: CommandExecutor,
        git_config: Optional[GitConfig] = None,
        service_user: Optional[str] = None,
    ):
        """Initialize lifecycle manager.

        Args:
            sanitizer: Resolves names to paths under the base directory
            executor: Runs git and chown
            git_config: Binary names and receive settings
            service_user: Owner applied with ``chown -R`` after create
        """
        self.sanitizer = sanitizer
        self.executor = executor
        self.git_config = git_config or GitConfig()
        self.service_user = service_user
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        # Guards parent directory creation against another call's rollback
        self._parents_lock = asyncio.Lock()

    @property
    def base_directory(self) -> Path:
        return self.sanitizer.base_directory

    def repository_path(self, name: str) -> Path:
        return self.sanitizer.repository_path(name)

    @asynccontextmanager
    async def _locked(self, *names: str):
        # Sorted acquisition keeps two renames over the same pair deadlock-free
        locks = []
        for name in sorted(set(names)):
            lock = self._locks.get(name)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[name] = lock
            locks.append(lock)

        for lock in locks:
            await lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()

    async def exists(self, name: str) -> bool:
        return await asyncio.to_thread(self.repository_path(name).exists)

    async def list_repositories(self) -> list[str]:
        """List repository names found under the base directory.

        Returns:
            Sorted names of ``*.git`` directories with valid names
        """
        return await asyncio.to_thread(self._scan_base_directory)

    def _scan_base_directory(self) -> list[str]:
        if not self.base_directory.is_dir():
            return []

        names = []
        for entry in self.base_directory.iterdir():
            if not entry.is_dir() or not entry.name.endswith(REPOSITORY_SUFFIX):
                continue
            name = entry.name[: -len(REPOSITORY_SUFFIX)]
            try:
                names.append(self.sanitizer.sanitize(name))
            except InvalidNameError:
                logger.debug("repository_scan_skipped", path=str(entry))
        return sorted(names)

    async def create(self, name: str) -> Path:
        """Create a bare repository.

        Args:
            name: Repository name

        Returns:
            Path of the new repository

        Raises:
            InvalidNameError: If the name is invalid
            AlreadyExistsError: If the repository path already exists
            FilesystemError: If directories cannot be created
            SubprocessError: If ``git init --bare`` fails; the filesystem is
                restored to its state before the call
        """
        repo_path = self.repository_path(name)

        async with self._locked(name):
            if await asyncio.to_thread(repo_path.exists):
                logger.warning("repository_already_exists", name=name, path=str(repo_path))
                raise AlreadyExistsError(name, repo_path)

            logger.debug("repository_create_started", name=name, path=str(repo_path))
            compensations = CompensationStack()

            try:
                await self._create_directories(name, repo_path, compensations)

                await self.executor.check(
                    [self.git_config.git_binary, "init", "--bare", str(repo_path)]
                )
            except (Exception, asyncio.CancelledError) as e:
                logger.error(
                    "repository_create_failed", name=name, path=str(repo_path), error=str(e) or type(e).__name__
                )
                async with self._parents_lock:
                    await compensations.rollback()
                raise

            logger.info("repository_initialized", name=name, path=str(repo_path))

            if self.service_user:
                try:
                    await self._change_ownership(repo_path, self.service_user)
                except OwnershipError as e:
                    logger.warning("repository_ownership_failed", name=name, error=str(e))

            await self._configure(name, repo_path)

            logger.info("repository_created", name=name, path=str(repo_path))
            return repo_path

    async def _create_directories(
        self, name: str, repo_path: Path, compensations: CompensationStack
    ) -> None:
        parent = repo_path.parent

        async with self._parents_lock:
            created_root = await asyncio.to_thread(_topmost_missing, parent)

            try:
                await asyncio.to_thread(parent.mkdir, parents=True, exist_ok=True)
            except OSError as e:
                raise FilesystemError("Failed to create parent directory", parent, e) from e
            if created_root is not None:
                compensations.push(RemoveEmptyDirectories(parent, created_root))

            # Exclusive mkdir: a concurrent creator in another process loses here
            try:
                await asyncio.to_thread(repo_path.mkdir)
            except FileExistsError as e:
                raise AlreadyExistsError(name, repo_path) from e
            except OSError as e:
                raise FilesystemError("Failed to create repository directory", repo_path, e) from e
            compensations.push(RemoveDirectory(repo_path))

    async def _change_ownership(self, repo_path: Path, user: str) -> None:
        argv = [self.git_config.chown_binary, "-R", f"{user}:{user}", str(repo_path)]
        try:
            result = await self.executor.run(argv)
        except SubprocessError as e:
            raise OwnershipError(repo_path, user, str(e)) from e

        if not result.ok:
            raise OwnershipError(repo_path, user, result.stderr.strip() or f"exit {result.returncode}")

    async def _configure(self, name: str, repo_path: Path) -> None:
        argv = [
            self.git_config.git_binary,
            "config",
            "receive.denyCurrentBranch",
            self.git_config.deny_current_branch,
        ]
        try:
            result = await self.executor.run(argv, cwd=repo_path)
            if not result.ok:
                logger.warning("repository_config_failed", name=name, stderr=result.stderr.strip())
        except SubprocessError as e:
            logger.warning("repository_config_failed", name=name, error=str(e))

        try:
            await asyncio.to_thread((repo_path / "hooks").mkdir, exist_ok=True)
        except OSError as e:
            logger.warning("repository_hooks_dir_failed", name=name, error=str(e))

    async def delete(self, name: str) -> None:
        """Delete a repository tree.

        There is no rollback: a removal that fails partway leaves the tree
        partially deleted.

        Raises:
            RepositoryNotFoundError: If the repository does not exist
            FilesystemError: If removal fails
        """
        repo_path = self.repository_path(name)

        async with self._locked(name):
            if not await asyncio.to_thread(repo_path.exists):
                logger.warning("repository_delete_missing", name=name, path=str(repo_path))
                raise RepositoryNotFoundError(name, repo_path)

            logger.debug("repository_delete_started", name=name, path=str(repo_path))
            try:
                await asyncio.to_thread(shutil.rmtree, repo_path)
            except OSError as e:
                logger.error("repository_delete_failed", name=name, path=str(repo_path), error=str(e))
                raise FilesystemError("Failed to delete repository", repo_path, e) from e

            logger.info("repository_deleted", name=name, path=str(repo_path))

    async def rename(self, old_name: str, new_name: str) -> Path:
        """Move a repository to a new name in one filesystem rename.

        Renaming a repository onto itself is rejected with AlreadyExistsError.

        Returns:
            Path of the renamed repository

        Raises:
            RepositoryNotFoundError: If the source does not exist
            AlreadyExistsError: If the target exists
            FilesystemError: If the rename fails
        """
        old_path = self.repository_path(old_name)
        new_path = self.repository_path(new_name)

        async with self._locked(old_name, new_name):
            if not await asyncio.to_thread(old_path.exists):
                raise RepositoryNotFoundError(old_name, old_path)

            if await asyncio.to_thread(new_path.exists):
                raise AlreadyExistsError(new_name, new_path)

            logger.debug("repository_rename_started", old=str(old_path), new=str(new_path))
            try:
                await asyncio.to_thread(os.rename, old_path, new_path)
            except OSError as e:
                logger.error(
                    "repository_rename_failed", old=str(old_path), new=str(new_path), error=str(e)
                )
                raise FilesystemError("Failed to rename repository", old_path, e) from e

            logger.info("repository_renamed", old_name=old_name, new_name=new_name, path=str(new_path))
            return new_path


def _topmost_missing(path: Path) -> Optional[Path]:
    """Return the highest ancestor of ``path`` (inclusive) that does not exist."""
    missing = None
    for candidate in (path, *path.parents):
        if candidate.exists():
            break
        missing = candidate
    return missing
