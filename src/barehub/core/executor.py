"""External command execution.

Lifecycle and checkout code never spawn processes directly; they go through
a ``CommandExecutor`` so tests can substitute a fake that records argv and
returns canned results.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from barehub.core.errors import SubprocessError
from barehub.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandExecutor(ABC):
    """Runs an argv and reports its exit status and captured output."""

    @abstractmethod
    async def run(self, argv: Sequence[str], cwd: Optional[Path] = None) -> CommandResult:
        """Run a command to completion.

        Args:
            argv: Program and arguments
            cwd: Working directory for the command

        Returns:
            CommandResult with exit status and decoded output

        Raises:
            SubprocessError: If the command cannot be spawned or times out
        """
        pass

    async def check(self, argv: Sequence[str], cwd: Optional[Path] = None) -> CommandResult:
        """Run a command and raise SubprocessError on a non-zero exit."""
        result = await self.run(argv, cwd=cwd)
        if not result.ok:
            raise SubprocessError(argv, returncode=result.returncode, stderr=result.stderr)
        return result


class SubprocessExecutor(CommandExecutor):
    """asyncio subprocess implementation with an optional timeout."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    async def run(self, argv: Sequence[str], cwd: Optional[Path] = None) -> CommandResult:
        argv = [str(arg) for arg in argv]
        logger.debug("command_started", argv=argv, cwd=str(cwd) if cwd else None)

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd) if cwd else None,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error("command_spawn_failed", argv=argv, error=str(e))
            raise SubprocessError(argv, reason=f"could not be started: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            await _kill(process)
            logger.error("command_timed_out", argv=argv, timeout=self.timeout)
            raise SubprocessError(argv, reason=f"timed out after {self.timeout}s")
        except asyncio.CancelledError:
            await _kill(process)
            logger.warning("command_cancelled", argv=argv, pid=process.pid)
            raise

        result = CommandResult(
            returncode=process.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
        logger.debug("command_finished", argv=argv, returncode=result.returncode)
        return result


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()
