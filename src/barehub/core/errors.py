"""Exceptions raised by repository lifecycle and introspection operations.

Every error carries the underlying diagnostic text (OS error, git stderr)
in its message so it can be surfaced to operators unchanged.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Optional


class RepositoryError(Exception):
    """Base exception for repository operations."""

    pass


class InvalidNameError(RepositoryError):
    """Repository name is empty or contains characters outside [A-Za-z0-9_-]."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid repository name {name!r}: {reason}")


class InvalidPathError(RepositoryError):
    """Relative file path escapes the repository root or names no file."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid file path {path!r}: {reason}")


class AlreadyExistsError(RepositoryError):
    """Target repository already exists on disk."""

    def __init__(self, name: str, path: Path):
        self.name = name
        self.path = path
        super().__init__(f"Repository '{name}' already exists at {path}")


class RepositoryNotFoundError(RepositoryError):
    """Repository does not exist on disk."""

    def __init__(self, name: str, path: Optional[Path] = None, message: Optional[str] = None):
        self.name = name
        self.path = path
        super().__init__(message or f"Repository '{name}' does not exist at {path}")


class EmptyRepositoryError(RepositoryNotFoundError):
    """Repository exists but HEAD resolves to no commit yet."""

    def __init__(self, name: str, path: Optional[Path] = None):
        super().__init__(
            name,
            path,
            message=f"Repository '{name}' has no commits; HEAD does not resolve to a tree",
        )


class FileNotFoundInRepositoryError(RepositoryError):
    """Requested path does not exist in the repository snapshot."""

    def __init__(self, name: str, path: str):
        self.name = name
        self.path = path
        super().__init__(f"File '{path}' not found in repository '{name}'")


class FileTooLargeError(RepositoryError):
    """File exceeds the configured display limit."""

    def __init__(self, path: str, size: int, limit: int):
        self.path = path
        self.size = size
        self.limit = limit
        super().__init__(f"File '{path}' is {size} bytes; limit is {limit} bytes")


class TreeLimitExceededError(RepositoryError):
    """Tree walk exceeded the configured depth or node count."""

    def __init__(self, name: str, limit: str, value: int):
        self.name = name
        self.limit = limit
        self.value = value
        super().__init__(f"Tree of repository '{name}' exceeds {limit}={value}")


class FilesystemError(RepositoryError):
    """I/O failure on a repository path."""

    def __init__(self, message: str, path: Path, original_error: Optional[OSError] = None):
        self.path = path
        self.original_error = original_error
        detail = f": {original_error}" if original_error else ""
        super().__init__(f"{message} ({path}){detail}")


class SubprocessError(RepositoryError):
    """External command failed to spawn, timed out, or exited non-zero."""

    def __init__(
        self,
        argv: Sequence[str],
        returncode: Optional[int] = None,
        stderr: str = "",
        reason: Optional[str] = None,
    ):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        if reason is None:
            reason = f"exited with status {returncode}"
        message = f"Command {' '.join(self.argv)!r} {reason}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


class OwnershipError(RepositoryError):
    """Changing ownership of a repository tree failed.

    Raised by ownership helpers; repository creation only logs it.
    """

    def __init__(self, path: Path, user: str, detail: str):
        self.path = path
        self.user = user
        super().__init__(f"Failed to set owner {user} on {path}: {detail}")
