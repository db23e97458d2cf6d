"""Tree introspection through a cached working-copy clone.

Each repository is cloned once under ``worktree_root/{name}`` and the
checked-out files are walked on disk. The cache is an LRU bounded by
``max_cached_worktrees``; an entry is reused only while the bare
repository's HEAD still matches the commit it was cloned at.
"""

import asyncio
import os
import shutil
from collections import OrderedDict
from pathlib import Path
from typing import Optional

from barehub.config.schema import IntrospectionConfig
from barehub.core.errors import (
    FileNotFoundInRepositoryError,
    FileTooLargeError,
    FilesystemError,
    InvalidPathError,
    SubprocessError,
)
from barehub.core.executor import CommandExecutor
from barehub.core.paths import PathSanitizer, contain_file_path, sanitize_name
from barehub.entities import FileContent, TreeNode
from barehub.introspection.base import TreeIntrospector, WalkBudget, decode_text, should_ignore
from barehub.introspection.object_graph import resolve_head
from barehub.observability.logging import get_logger

logger = get_logger(__name__)


class CheckoutIntrospector(TreeIntrospector):
    """Reads repository trees from a materialized clone."""

    def __init__(
        self,
        sanitizer: PathSanitizer,
        worktree_root: Path,
        executor: CommandExecutor,
        config: Optional[IntrospectionConfig] = None,
        git_binary: str = "git",
    ) -> None:
        """Initialize checkout introspector.

        Args:
            sanitizer: Resolves repository names to bare repository paths
            worktree_root: Directory holding one clone per repository
            executor: Runs ``git clone``
            config: Walk limits, content options, and cache size
            git_binary: git executable
        """
        super().__init__(sanitizer, config)
        self.worktree_root = Path(worktree_root)
        self.executor = executor
        self.git_binary = git_binary
        # name -> HEAD sha the worktree was cloned at, least recently used first
        self._cache: OrderedDict[str, bytes] = OrderedDict()
        self._lock = asyncio.Lock()

    def worktree_path(self, name: str) -> Path:
        return self.worktree_root / sanitize_name(name)

    @property
    def cached(self) -> list[str]:
        return list(self._cache)

    async def read(self, name: str) -> TreeNode:
        async with self._lock:
            worktree = await self._ensure_worktree(name)
            return await asyncio.to_thread(self._read_worktree, name, worktree)

    async def read_file(self, name: str, relative_path: str) -> FileContent:
        async with self._lock:
            worktree = await self._ensure_worktree(name)
            return await asyncio.to_thread(self._read_worktree_file, name, worktree, relative_path)

    async def invalidate(self, name: str) -> None:
        async with self._lock:
            self._cache.pop(name, None)
            await self._remove_worktree(self.worktree_path(name))

    async def _ensure_worktree(self, name: str) -> Path:
        repo_path = self.sanitizer.repository_path(name)
        head = await asyncio.to_thread(resolve_head, name, repo_path)
        worktree = self.worktree_path(name)

        if self._cache.get(name) == head and await asyncio.to_thread(worktree.is_dir):
            self._cache.move_to_end(name)
            return worktree

        if name in self._cache:
            logger.info("worktree_stale", name=name, head=head.decode("ascii"))
        self._cache.pop(name, None)
        await self._remove_worktree(worktree)

        try:
            await asyncio.to_thread(self.worktree_root.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError("Failed to create worktree root", self.worktree_root, e) from e

        try:
            await self.executor.check(
                [self.git_binary, "clone", "--quiet", str(repo_path), str(worktree)]
            )
        except SubprocessError:
            await self._remove_worktree(worktree)
            raise

        self._cache[name] = head
        logger.info("worktree_cloned", name=name, path=str(worktree), head=head.decode("ascii"))

        while len(self._cache) > self.config.max_cached_worktrees:
            evicted, _ = self._cache.popitem(last=False)
            logger.info("worktree_evicted", name=evicted)
            await self._remove_worktree(self.worktree_path(evicted))

        return worktree

    async def _remove_worktree(self, worktree: Path) -> None:
        if not await asyncio.to_thread(worktree.exists):
            return
        try:
            await asyncio.to_thread(shutil.rmtree, worktree)
        except OSError as e:
            raise FilesystemError("Failed to remove worktree", worktree, e) from e

    def _read_worktree(self, name: str, worktree: Path) -> TreeNode:
        budget = self._budget(name)
        try:
            children = self._walk(worktree, worktree, 1, budget)
        except OSError as e:
            raise FilesystemError("Failed to read worktree", worktree, e) from e

        logger.debug("tree_read", name=name, strategy="checkout", nodes=budget.nodes)
        return TreeNode.directory(name, "", children)

    def _walk(self, directory: Path, root: Path, depth: int, budget: WalkBudget) -> list[TreeNode]:
        budget.enter(depth)
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda entry: entry.name)

        children = []
        for entry in entries:
            if should_ignore(entry.name):
                continue

            entry_path = Path(entry.path)
            relative = entry_path.relative_to(root).as_posix()

            if entry.is_dir(follow_symlinks=False):
                try:
                    subtree = self._walk(entry_path, root, depth + 1, budget)
                except OSError as e:
                    logger.warning("subtree_read_failed", path=relative, error=str(e))
                    continue
                budget.visit()
                children.append(TreeNode.directory(entry.name, relative, subtree))
                continue

            try:
                size = entry.stat(follow_symlinks=False).st_size
                content = None
                if entry.is_file(follow_symlinks=False) and size <= self.config.max_content_bytes:
                    content = self._inline_content(entry_path.read_bytes())
            except OSError as e:
                logger.warning("file_read_failed", path=relative, error=str(e))
                continue

            budget.visit()
            children.append(TreeNode.file(entry.name, relative, size, content))

        return children

    def _read_worktree_file(self, name: str, worktree: Path, relative_path: str) -> FileContent:
        root_path = Path(os.path.normpath(worktree))
        target = contain_file_path(root_path, relative_path)
        if target == root_path:
            raise InvalidPathError(relative_path, "path does not name a file")
        inner_path = target.relative_to(root_path).as_posix()

        if not target.exists():
            raise FileNotFoundInRepositoryError(name, inner_path)

        # A checked-out symlink may point anywhere on the host
        if not target.resolve().is_relative_to(root_path.resolve()):
            raise InvalidPathError(relative_path, "path escapes the repository root")

        if not target.is_file():
            raise InvalidPathError(relative_path, "path is not a file")

        size = target.stat().st_size
        if size > self.config.max_file_bytes:
            raise FileTooLargeError(inner_path, size, self.config.max_file_bytes)

        content = decode_text(target.read_bytes())
        return FileContent(
            repository=name,
            path=inner_path,
            size=size,
            is_binary=content is None,
            content=content,
        )
