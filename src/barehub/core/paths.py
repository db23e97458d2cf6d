"""Repository name validation and path containment.

Pure functions only; nothing here touches the filesystem.
"""

import os
import re
from pathlib import Path

from barehub.core.errors import InvalidNameError, InvalidPathError

_NAME_PATTERN = re.compile(r"[A-Za-z0-9_-]+")

REPOSITORY_SUFFIX = ".git"


def sanitize_name(name: str) -> str:
    """Validate a repository name.

    Nothing is stripped or escaped: a name is either returned unchanged or
    rejected.

    Raises:
        InvalidNameError: If the name is blank or has characters outside
            [A-Za-z0-9_-]
    """
    if not name or not name.strip():
        raise InvalidNameError(name, "name cannot be empty")

    if not _NAME_PATTERN.fullmatch(name):
        raise InvalidNameError(name, "name contains invalid characters")

    return name


def contain_file_path(root: Path, relative_path: str) -> Path:
    """Join ``relative_path`` onto ``root`` and verify it stays inside.

    ``..`` segments are collapsed lexically before the check; an absolute
    ``relative_path`` replaces the root and is therefore rejected.

    Raises:
        InvalidPathError: If the joined path is not under ``root``
    """
    root = Path(os.path.normpath(root))
    candidate = Path(os.path.normpath(root / relative_path))

    if candidate != root and root not in candidate.parents:
        raise InvalidPathError(relative_path, "path escapes the repository root")

    return candidate


class PathSanitizer:
    """Maps repository names to paths under a fixed base directory."""

    def __init__(self, base_directory: Path):
        self.base_directory = Path(base_directory)

    def sanitize(self, name: str) -> str:
        return sanitize_name(name)

    def repository_path(self, name: str) -> Path:
        """Return ``base_directory / (name + ".git")`` for a valid name."""
        return self.base_directory / f"{sanitize_name(name)}{REPOSITORY_SUFFIX}"

    def contain_file_path(self, root: Path, relative_path: str) -> Path:
        return contain_file_path(root, relative_path)
