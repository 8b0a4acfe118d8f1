"""Async subprocess helper used for every wrapped tool invocation.

Mirrors the run-mode wrapper: the child gets ``os.environ`` plus overrides,
and a non-zero exit is surfaced as :class:`errors.SubprocessFailed` carrying
whatever output was captured.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from common.logging_utils import Timer, extra_context, is_debug_enabled
from errors import SubprocessFailed

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class SpawnResult:
    """Outcome of a finished subprocess."""

    code: int
    stdout: str = ""
    stderr: str = ""


async def spawn(
    cmd: str,
    args: Optional[List[str]] = None,
    *,
    cwd: Optional[PathLike] = None,
    env: Optional[Dict[str, str]] = None,
    tty: bool = False,
    label: Optional[str] = None,
) -> SpawnResult:
    """Run ``cmd args...`` and wait for it.

    Args:
        cmd: Executable name or path.
        args: Arguments passed after the executable.
        cwd: Working directory for the child.
        env: Variables layered over the current environment.
        tty: Inherit the terminal instead of capturing output.
        label: Prefix for log lines (usually the package name).

    Returns:
        SpawnResult with exit code and captured output (empty when ``tty``).

    Raises:
        SubprocessFailed: If the child exits non-zero.
    """
    argv = [cmd] + list(args or [])
    child_env = os.environ.copy()
    if env:
        child_env.update(env)

    stream = None if tty else asyncio.subprocess.PIPE
    if is_debug_enabled(logger):
        logger.debug(
            "Spawning: %s",
            " ".join(argv),
            extra=extra_context(event="spawn", component="process", target=label, cwd=str(cwd) if cwd else None),
        )

    with Timer() as timer:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd) if cwd is not None else None,
            env=child_env,
            stdout=stream,
            stderr=stream,
        )
        out, err = await proc.communicate()

    stdout = out.decode("utf-8", errors="replace") if out else ""
    stderr = err.decode("utf-8", errors="replace") if err else ""
    code = proc.returncode if proc.returncode is not None else -1

    if code != 0:
        logger.error(
            "%s%s exited with code %s",
            f"[{label}] " if label else "",
            argv[0],
            code,
            extra=extra_context(event="spawn_exit", outcome="failure", duration_ms=timer.duration_ms()),
        )
        raise SubprocessFailed(argv, code, stdout, stderr)

    if is_debug_enabled(logger):
        logger.debug(
            "Process finished",
            extra=extra_context(event="spawn_exit", outcome="success", duration_ms=timer.duration_ms()),
        )
    return SpawnResult(code=code, stdout=stdout, stderr=stderr)
