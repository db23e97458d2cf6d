"""Compensating actions for multi-step lifecycle operations.

A step that succeeds pushes the action that undoes it; if a later step
fails, ``rollback`` runs the recorded actions newest first.
"""

import asyncio
import errno
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from barehub.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RemoveDirectory:
    """Undo a directory creation by removing the tree."""

    path: Path

    async def apply(self) -> None:
        await asyncio.to_thread(shutil.rmtree, self.path)


@dataclass(frozen=True)
class RemoveEmptyDirectories:
    """Undo parent directory creation from ``path`` up to ``top``.

    Only empty directories are removed. The walk stops at the first
    directory that still holds entries, such as a repository another
    call created in the meantime.
    """

    path: Path
    top: Path

    async def apply(self) -> None:
        await asyncio.to_thread(self._prune)

    def _prune(self) -> None:
        current = self.path
        while True:
            try:
                os.rmdir(current)
            except OSError as e:
                if e.errno in (errno.ENOTEMPTY, errno.EEXIST):
                    logger.debug("rollback_directory_kept", path=str(current))
                    return
                raise
            if current == self.top or current == current.parent:
                return
            current = current.parent


CompensatingAction = Union[RemoveDirectory, RemoveEmptyDirectories]


class CompensationStack:
    """Ordered record of compensating actions for one operation."""

    def __init__(self) -> None:
        self._actions: list[CompensatingAction] = []

    def push(self, action: CompensatingAction) -> None:
        self._actions.append(action)

    def __len__(self) -> int:
        return len(self._actions)

    @property
    def actions(self) -> list[CompensatingAction]:
        return list(self._actions)

    async def rollback(self) -> None:
        """Run every recorded action in reverse order.

        A failing action is logged and the remaining ones still run.
        """
        while self._actions:
            action = self._actions.pop()
            try:
                await action.apply()
                logger.info("rollback_step_applied", action=type(action).__name__, path=str(action.path))
            except FileNotFoundError:
                logger.debug("rollback_step_noop", action=type(action).__name__, path=str(action.path))
            except OSError as e:
                logger.warning(
                    "rollback_step_failed",
                    action=type(action).__name__,
                    path=str(action.path),
                    error=str(e),
                )
