"""Abstract base for repository tree introspection.

Why this exists:
- Two interchangeable ways to read a repository tree (object store walk,
  materialized checkout) behind one contract
- Shared ignore policy and walk limits so both produce identical trees

How to extend:
1. Subclass TreeIntrospector
2. Implement read() and read_file()
3. Register in create_introspector()
"""

from abc import ABC, abstractmethod
from typing import Optional

from barehub.config.schema import IntrospectionConfig
from barehub.core.errors import TreeLimitExceededError
from barehub.core.paths import PathSanitizer
from barehub.entities import FileContent, RepositorySnapshot, TreeNode, count_files, total_size

IGNORED_DIRECTORIES = frozenset({".git", ".svn", ".hg", "node_modules", "target", ".vscode", ".idea"})
IGNORED_FILES = frozenset({".DS_Store", "Thumbs.db", ".gitignore"})


def should_ignore(name: str) -> bool:
    """True for VCS/tooling directories, OS artifacts, and any dotfile."""
    return name in IGNORED_DIRECTORIES or name in IGNORED_FILES or name.startswith(".")


def is_binary(data: bytes) -> bool:
    """Null-byte heuristic used for both blobs and checked-out files."""
    return b"\x00" in data


def decode_text(data: bytes) -> Optional[str]:
    """Decode file bytes as text, or None for binary data."""
    if is_binary(data):
        return None
    return data.decode("utf-8", errors="replace")


class WalkBudget:
    """Tracks depth and node count for one tree walk."""

    def __init__(self, name: str, max_depth: int, max_nodes: int):
        self.name = name
        self.max_depth = max_depth
        self.max_nodes = max_nodes
        self.nodes = 0

    def enter(self, depth: int) -> None:
        if depth > self.max_depth:
            raise TreeLimitExceededError(self.name, "max_depth", self.max_depth)

    def visit(self) -> None:
        self.nodes += 1
        if self.nodes > self.max_nodes:
            raise TreeLimitExceededError(self.name, "max_nodes", self.max_nodes)


class TreeIntrospector(ABC):
    """Produces a size-annotated tree of a repository's HEAD contents."""

    def __init__(self, sanitizer: PathSanitizer, config: Optional[IntrospectionConfig] = None) -> None:
        """Initialize introspector.

        Args:
            sanitizer: Resolves repository names to bare repository paths
            config: Walk limits and content options
        """
        self.sanitizer = sanitizer
        self.config = config or IntrospectionConfig()

    def _budget(self, name: str) -> WalkBudget:
        return WalkBudget(name, self.config.max_depth, self.config.max_nodes)

    def _inline_content(self, data: bytes) -> Optional[str]:
        if not self.config.include_content or len(data) > self.config.max_content_bytes:
            return None
        return decode_text(data)

    @abstractmethod
    async def read(self, name: str) -> TreeNode:
        """Read the repository tree at HEAD.

        Args:
            name: Repository name

        Returns:
            Root TreeNode named after the repository

        Raises:
            RepositoryNotFoundError: If the repository does not exist
            EmptyRepositoryError: If HEAD does not resolve to a commit
            TreeLimitExceededError: If the tree exceeds configured limits
        """
        pass

    @abstractmethod
    async def read_file(self, name: str, relative_path: str) -> FileContent:
        """Read one file at HEAD.

        Args:
            name: Repository name
            relative_path: Path inside the repository

        Returns:
            FileContent; binary files carry no content

        Raises:
            InvalidPathError: If the path escapes the repository or is not a file
            FileNotFoundInRepositoryError: If nothing exists at the path
            FileTooLargeError: If the file exceeds ``max_file_bytes``
        """
        pass

    async def snapshot(self, name: str) -> RepositorySnapshot:
        """Read the tree and compute its aggregate counts."""
        tree = await self.read(name)
        return RepositorySnapshot(
            name=name,
            structure=tree,
            total_files=count_files(tree),
            total_size=total_size(tree),
        )

    async def invalidate(self, name: str) -> None:
        """Drop any cached state for a repository."""
        return None

    async def close(self) -> None:
        """Release resources held by the introspector."""
        return None
