"""Entities - Domain models for repository hosting.

This module contains pure domain entities without business logic:
- RepositoryRecord: Persisted description of a bare repository
- TreeNode: A file or directory in a repository snapshot
- FileContent: A single file read from a repository
- RepositorySnapshot: A tree read with aggregate counts
"""

from barehub.entities.repository import RepositoryRecord
from barehub.entities.tree import (
    FileContent,
    RepositorySnapshot,
    TreeNode,
    count_files,
    file_extension,
    total_size,
)

__all__ = [
    "FileContent",
    "RepositoryRecord",
    "RepositorySnapshot",
    "TreeNode",
    "count_files",
    "file_extension",
    "total_size",
]
