"""Tree introspection straight from the git object store.

Resolves HEAD -> commit -> root tree with dulwich and walks tree entries.
Nothing is written to disk, so reads never race a clone against pushes.
"""

import asyncio
import os
import stat
from pathlib import Path

from dulwich.errors import NotGitRepository, NotTreeError
from dulwich.objects import S_ISGITLINK, Blob, Commit, Tree
from dulwich.repo import Repo

from barehub.core.errors import (
    EmptyRepositoryError,
    FileNotFoundInRepositoryError,
    FileTooLargeError,
    InvalidPathError,
    RepositoryNotFoundError,
)
from barehub.core.paths import contain_file_path
from barehub.entities import FileContent, TreeNode
from barehub.introspection.base import TreeIntrospector, WalkBudget, decode_text, should_ignore
from barehub.observability.logging import get_logger

logger = get_logger(__name__)


def open_repository(name: str, repo_path: Path) -> Repo:
    """Open a bare repository with dulwich.

    Raises:
        RepositoryNotFoundError: If the path is missing or not a repository
    """
    if not repo_path.exists():
        raise RepositoryNotFoundError(name, repo_path)
    try:
        return Repo(str(repo_path))
    except NotGitRepository as e:
        raise RepositoryNotFoundError(
            name, repo_path, message=f"Not a git repository: {repo_path} ({e})"
        ) from e


def head_commit(repo: Repo, name: str, repo_path: Path) -> Commit:
    """Resolve HEAD to a commit.

    Raises:
        EmptyRepositoryError: If HEAD points at a branch with no commits
    """
    try:
        head = repo.head()
    except KeyError as e:
        raise EmptyRepositoryError(name, repo_path) from e

    commit = repo[head]
    if not isinstance(commit, Commit):
        raise EmptyRepositoryError(name, repo_path)
    return commit


def root_tree(repo: Repo, name: str, repo_path: Path) -> Tree:
    return repo[head_commit(repo, name, repo_path).tree]


def resolve_head(name: str, repo_path: Path) -> bytes:
    """SHA of the commit HEAD points at."""
    with open_repository(name, repo_path) as repo:
        return head_commit(repo, name, repo_path).id


class ObjectGraphIntrospector(TreeIntrospector):
    """Reads repository trees by walking commit, tree, and blob objects."""

    async def read(self, name: str) -> TreeNode:
        repo_path = self.sanitizer.repository_path(name)
        return await asyncio.to_thread(self._read_tree, name, repo_path)

    async def read_file(self, name: str, relative_path: str) -> FileContent:
        repo_path = self.sanitizer.repository_path(name)
        return await asyncio.to_thread(self._read_blob, name, repo_path, relative_path)

    def _read_tree(self, name: str, repo_path: Path) -> TreeNode:
        with open_repository(name, repo_path) as repo:
            root = root_tree(repo, name, repo_path)
            budget = self._budget(name)
            children = self._walk(repo, root, "", 1, budget)

        logger.debug("tree_read", name=name, strategy="object_graph", nodes=budget.nodes)
        return TreeNode.directory(name, "", children)

    def _walk(self, repo: Repo, tree: Tree, prefix: str, depth: int, budget: WalkBudget) -> list[TreeNode]:
        budget.enter(depth)
        children = []

        for entry in tree.items():
            entry_name = entry.path.decode("utf-8", errors="replace")
            if should_ignore(entry_name):
                continue

            # Submodule commits live in another repository's object store
            if S_ISGITLINK(entry.mode):
                continue

            entry_path = f"{prefix}/{entry_name}" if prefix else entry_name
            try:
                obj = repo[entry.sha]
            except KeyError:
                logger.warning("tree_entry_missing", path=entry_path, sha=entry.sha.decode("ascii"))
                continue

            if isinstance(obj, Tree):
                budget.visit()
                subtree = self._walk(repo, obj, entry_path, depth + 1, budget)
                children.append(TreeNode.directory(entry_name, entry_path, subtree))
            elif isinstance(obj, Blob):
                budget.visit()
                data = obj.as_raw_string()
                # A symlink blob holds its target path, not file content
                content = None if stat.S_ISLNK(entry.mode) else self._inline_content(data)
                children.append(TreeNode.file(entry_name, entry_path, len(data), content))

        return children

    def _read_blob(self, name: str, repo_path: Path, relative_path: str) -> FileContent:
        root_path = Path(os.path.normpath(repo_path))
        target = contain_file_path(root_path, relative_path)
        if target == root_path:
            raise InvalidPathError(relative_path, "path does not name a file")
        inner_path = target.relative_to(root_path).as_posix()

        with open_repository(name, repo_path) as repo:
            root = root_tree(repo, name, repo_path)
            try:
                _mode, sha = root.lookup_path(repo.__getitem__, inner_path.encode("utf-8"))
                obj = repo[sha]
            except (KeyError, NotTreeError) as e:
                raise FileNotFoundInRepositoryError(name, inner_path) from e

            if not isinstance(obj, Blob):
                raise InvalidPathError(relative_path, "path is not a file")

            size = obj.raw_length()
            if size > self.config.max_file_bytes:
                raise FileTooLargeError(inner_path, size, self.config.max_file_bytes)

            content = decode_text(obj.as_raw_string())

        return FileContent(
            repository=name,
            path=inner_path,
            size=size,
            is_binary=content is None,
            content=content,
        )
