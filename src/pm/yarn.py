"""yarn wrapper: every package-manager operation monolift delegates.

Each call resolves the workspace-local yarn binary when one is installed
under ``node_modules/.bin`` and falls back to ``yarn`` on ``PATH``.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from common.process import SpawnResult, spawn
from constants import Constants
from workspace.package import Package

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class Dependency:
    """A dependency argument for add/upgrade, e.g. ``lodash@^4``."""

    name: str
    version: Optional[str] = None

    def to_arg(self) -> str:
        return f"{self.name}@{self.version}" if self.version else self.name


def local_yarn(cwd: Optional[PathLike] = None) -> str:
    """Path of the nearest ``node_modules/.bin/yarn`` above ``cwd``, else ``yarn``."""
    start = Path(cwd).resolve() if cwd else Path.cwd()
    for directory in [start] + list(start.parents):
        candidate = directory.joinpath(*Constants.NODE_MODULES_BIN, Constants.YARN_BIN)
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return str(candidate)
    return shutil.which(Constants.YARN_BIN) or Constants.YARN_BIN


def dep_type_to_flag(dep_type: Optional[str]) -> Optional[str]:
    for flag, mapped in Constants.DEPENDENCY_TYPE_FLAGS.items():
        if mapped == dep_type:
            return f"--{flag}"
    return None


async def user_agent() -> str:
    """yarn's configured user agent, newlines stripped."""
    result = await spawn(local_yarn(), ["config", "get", "user-agent"], tty=False)
    return result.stdout.replace("\n", "")


async def install(cwd: PathLike, pure_lockfile: bool = False) -> SpawnResult:
    flags = ["--pure-lockfile"] if pure_lockfile else []
    yarn_agent = await user_agent()
    agent = f"monolift/{Constants.MONOLIFT_VERSION} {yarn_agent}".strip()
    return await spawn(
        local_yarn(cwd),
        ["install"] + flags,
        cwd=cwd,
        tty=True,
        env={"npm_config_user_agent": agent, "monolift_config_user_agent": agent},
    )


async def add(pkg: Package, dependencies: List[Dependency], dep_type: Optional[str] = None) -> Optional[SpawnResult]:
    if not dependencies:
        return None
    args = ["add"] + [dep.to_arg() for dep in dependencies]
    flag = dep_type_to_flag(dep_type)
    if flag:
        args.append(flag)
    return await spawn(local_yarn(pkg.directory), args, cwd=pkg.directory, tty=True, label=pkg.name)


async def upgrade(
    pkg: Package,
    dependencies: Optional[List[Dependency]] = None,
    flags: Optional[List[str]] = None,
) -> SpawnResult:
    args = ["upgrade"] + [dep.to_arg() for dep in dependencies or []] + list(flags or [])
    return await spawn(local_yarn(pkg.directory), args, cwd=pkg.directory, tty=True, label=pkg.name)


async def remove(dependencies: List[str], cwd: PathLike) -> SpawnResult:
    return await spawn(local_yarn(cwd), ["remove"] + list(dependencies), cwd=cwd, tty=True)


async def run(pkg: Package, script: str, args: Optional[List[str]] = None) -> SpawnResult:
    yarn = local_yarn(pkg.directory)
    # Relative paths keep the logged command short
    try:
        yarn = os.path.relpath(yarn, pkg.directory) if os.path.isabs(yarn) else yarn
    except ValueError:
        pass
    return await spawn(
        yarn,
        ["run", "-s", script] + list(args or []),
        cwd=pkg.directory,
        tty=True,
        label=pkg.name,
    )


def get_script(pkg: Package, script: str) -> Optional[str]:
    """The script body, or the script name when a matching bin exists."""
    scripts = pkg.manifest.scripts
    if scripts.get(script):
        return scripts[script]
    try:
        bins = os.listdir(pkg.node_modules_bin)
    except OSError:
        bins = []
    if script in bins:
        return script
    return None


async def run_if_exists(pkg: Package, script: str, args: Optional[List[str]] = None) -> Optional[SpawnResult]:
    if get_script(pkg, script) is None:
        logger.debug("%s has no script %s; skipping", pkg.name, script)
        return None
    return await run(pkg, script, args)


async def cli_command(cwd: PathLike, command: str = "", args: Optional[List[str]] = None) -> SpawnResult:
    return await spawn(local_yarn(cwd), [command] + list(args or []), cwd=cwd, tty=True)


async def info(cwd: PathLike, args: Optional[List[str]] = None) -> SpawnResult:
    return await spawn(local_yarn(cwd), ["info"] + list(args or []), cwd=cwd, tty=False)


async def global_cli(command: str, dependencies: List[Dependency]) -> Optional[SpawnResult]:
    if not dependencies:
        return None
    return await spawn(Constants.YARN_BIN, ["global", command] + [dep.to_arg() for dep in dependencies], tty=True)
