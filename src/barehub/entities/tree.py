"""Tree entities - snapshot of a repository's file hierarchy."""

from typing import Optional

from pydantic import BaseModel, Field


class TreeNode(BaseModel):
    """A file or directory in a repository snapshot.

    A directory's ``size`` is the sum of its children's sizes; children are
    sorted by name.
    """

    name: str
    path: str = Field(..., description="Path relative to the repository root ('' for the root)")
    is_file: bool
    size: int = Field(default=0, ge=0, description="Size in bytes")
    extension: Optional[str] = None
    children: list["TreeNode"] = Field(default_factory=list)
    content: Optional[str] = Field(default=None, description="Decoded text for non-binary files")

    @classmethod
    def file(
        cls, name: str, path: str, size: int, content: Optional[str] = None
    ) -> "TreeNode":
        return cls(
            name=name,
            path=path,
            is_file=True,
            size=size,
            extension=file_extension(name),
            content=content,
        )

    @classmethod
    def directory(cls, name: str, path: str, children: list["TreeNode"]) -> "TreeNode":
        children = sorted(children, key=lambda child: child.name)
        return cls(
            name=name,
            path=path,
            is_file=False,
            size=sum(child.size for child in children),
            children=children,
        )


class FileContent(BaseModel):
    """Contents of a single file read from a repository."""

    repository: str
    path: str
    size: int
    is_binary: bool
    content: Optional[str] = None


class RepositorySnapshot(BaseModel):
    """A tree read together with its aggregate counts."""

    name: str
    structure: TreeNode
    total_files: int
    total_size: int


def file_extension(name: str) -> Optional[str]:
    """Lower-cased extension without the dot, or None."""
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem or not ext:
        return None
    return ext.lower()


def count_files(tree: TreeNode) -> int:
    """Number of file leaves under ``tree``."""
    if tree.is_file:
        return 1
    return sum(count_files(child) for child in tree.children)


def total_size(tree: TreeNode) -> int:
    """Total size in bytes, precomputed on the root."""
    return tree.size
