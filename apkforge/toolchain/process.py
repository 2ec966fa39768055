"""
Subprocess helper shared by every tool binding.

Runs a command with captured output, an optional bound on the wait and an
optional abort signal. Whatever happens (timeout, abort, cancellation) the
child is terminated and reaped before control returns.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from ..core.exceptions import ToolNotFoundError
from ..core.logging import get_logger
from .interface import ToolAborted

logger = get_logger(__name__)

_KILL_GRACE_SECONDS = 5.0


@dataclass
class ToolOutput:
    """Captured result of a finished tool invocation."""

    command: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def tail(self, limit: int = 2000) -> str:
        """Last part of stderr (or stdout when stderr is empty) for error messages."""
        text = self.stderr.strip() or self.stdout.strip()
        return text[-limit:]


async def terminate(proc: asyncio.subprocess.Process) -> None:
    """Terminate a child process, killing it if it ignores SIGTERM."""
    if proc.returncode is not None:
        return
    try:
        proc.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(proc.wait(), timeout=_KILL_GRACE_SECONDS)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()


async def run_tool(
    command: Sequence[str | Path],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
    abort: asyncio.Event | None = None,
) -> ToolOutput:
    """Run a tool to completion and capture its output.

    Args:
        command: Program and arguments.
        cwd: Working directory.
        env: Extra environment variables, merged over the current environment.
        timeout: Bound on the whole invocation in seconds.
        abort: Event that stops the invocation early when set.

    Returns:
        ToolOutput, also for non-zero exit codes.

    Raises:
        ToolNotFoundError: If the program does not exist.
        asyncio.TimeoutError: If ``timeout`` elapsed.
        ToolAborted: If ``abort`` was set before the tool finished.
    """
    cmd = [str(part) for part in command]
    logger.debug("Running tool", command=" ".join(cmd), cwd=str(cwd) if cwd else None)

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=cwd,
            env={**os.environ, **env} if env else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ToolNotFoundError(message=f"cannot execute {cmd[0]}", tool_name=Path(cmd[0]).name, expected_path=cmd[0], cause=e) from e

    communicate = asyncio.ensure_future(proc.communicate())
    waiters: set[asyncio.Future] = {communicate}
    abort_wait = asyncio.ensure_future(abort.wait()) if abort is not None else None
    if abort_wait is not None:
        waiters.add(abort_wait)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        if communicate not in done:
            await terminate(proc)
            await asyncio.gather(communicate, return_exceptions=True)
            if abort_wait is not None and abort_wait in done:
                logger.debug("Tool aborted", command=cmd[0])
                raise ToolAborted(" ".join(cmd))
            logger.warning("Tool timed out", command=cmd[0], timeout=timeout)
            raise asyncio.TimeoutError(f"{cmd[0]} did not finish within {timeout}s")
        stdout, stderr = communicate.result()
    except asyncio.CancelledError:
        await terminate(proc)
        await asyncio.gather(communicate, return_exceptions=True)
        raise
    finally:
        if abort_wait is not None:
            abort_wait.cancel()

    output = ToolOutput(
        command=cmd,
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )
    if not output.ok:
        logger.debug("Tool failed", command=cmd[0], returncode=output.returncode, stderr=output.tail(500))
    return output
