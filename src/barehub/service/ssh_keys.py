"""authorized_keys editing for the git service account."""

import asyncio
from pathlib import Path

from barehub.observability.logging import get_logger

logger = get_logger(__name__)


class AuthorizedKeysFile:
    """Line-oriented editor for an OpenSSH ``authorized_keys`` file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def add_key(self, public_key: str) -> None:
        """Append a public key as one line, creating the file if needed.

        Raises:
            ValueError: If the key is blank or spans several lines
        """
        key = _validate_key(public_key)
        await asyncio.to_thread(self._append, key)
        logger.info("ssh_key_added", path=str(self.path))

    async def remove_key(self, public_key: str) -> int:
        """Drop every line containing the key.

        Returns:
            Number of lines removed (0 when the file does not exist)
        """
        key = _validate_key(public_key)
        removed = await asyncio.to_thread(self._remove, key)
        logger.info("ssh_key_removed", path=str(self.path), lines=removed)
        return removed

    async def replace_key(self, old_key: str, new_key: str) -> int:
        """Swap one key for another in a single rewrite of the file.

        Lines containing ``old_key`` are dropped and ``new_key`` is appended,
        whether or not the old key was present.

        Returns:
            Number of lines removed
        """
        old = _validate_key(old_key)
        new = _validate_key(new_key)
        removed = await asyncio.to_thread(self._replace, old, new)
        logger.info("ssh_key_replaced", path=str(self.path), lines=removed)
        return removed

    async def list_keys(self) -> list[str]:
        return await asyncio.to_thread(self._read_lines)

    def _append(self, key: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(key + "\n")

    def _remove(self, key: str) -> int:
        lines = self._read_lines()
        kept = [line for line in lines if key not in line]
        if len(kept) != len(lines):
            self.path.write_text("".join(line + "\n" for line in kept), encoding="utf-8")
        return len(lines) - len(kept)

    def _replace(self, old: str, new: str) -> int:
        lines = self._read_lines()
        kept = [line for line in lines if old not in line]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("".join(line + "\n" for line in [*kept, new]), encoding="utf-8")
        return len(lines) - len(kept)

    def _read_lines(self) -> list[str]:
        if not self.path.exists():
            return []
        return [line for line in self.path.read_text(encoding="utf-8").splitlines() if line.strip()]


def _validate_key(public_key: str) -> str:
    key = public_key.strip()
    if not key:
        raise ValueError("SSH public key cannot be empty")
    if "\n" in key or "\r" in key:
        raise ValueError("SSH public key must be a single line")
    return key
