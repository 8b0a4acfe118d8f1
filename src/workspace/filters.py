"""Package selection by name glob, directory glob and git changes."""

from __future__ import annotations

import fnmatch
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Optional, Set

from common.process import spawn
from .package import Package

logger = logging.getLogger(__name__)


@dataclass
class FilterOptions:
    """Selection criteria; every unset criterion matches everything."""

    only: Optional[str] = None
    ignore: Optional[str] = None
    only_fs: Optional[str] = None
    ignore_fs: Optional[str] = None
    changed_since: Optional[str] = None

    @classmethod
    def from_args(cls, args: Any) -> "FilterOptions":
        return cls(
            only=getattr(args, "ONLY", None),
            ignore=getattr(args, "IGNORE", None),
            only_fs=getattr(args, "ONLY_FS", None),
            ignore_fs=getattr(args, "IGNORE_FS", None),
            changed_since=getattr(args, "CHANGED_SINCE", None),
        )


def _relative_dir(pkg: Package, root: Path) -> str:
    try:
        return pkg.directory.relative_to(root).as_posix()
    except ValueError:
        return pkg.directory.as_posix()


def _match_any(value: str, patterns: str) -> bool:
    return any(fnmatch.fnmatchcase(value, p.strip()) for p in patterns.split(",") if p.strip())


def filter_packages(packages: Iterable[Package], opts: FilterOptions, root: Path) -> List[Package]:
    """Apply the glob criteria of ``opts``; ``changed_since`` is handled separately."""
    selected = []
    for pkg in packages:
        rel = _relative_dir(pkg, root)
        if opts.only and not _match_any(pkg.name, opts.only):
            continue
        if opts.ignore and _match_any(pkg.name, opts.ignore):
            continue
        if opts.only_fs and not _match_any(rel, opts.only_fs):
            continue
        if opts.ignore_fs and _match_any(rel, opts.ignore_fs):
            continue
        selected.append(pkg)
    return selected


async def changed_files(root: Path, ref: str) -> Set[Path]:
    """Files changed between ``ref`` and the working tree, as absolute paths."""
    result = await spawn("git", ["diff", "--name-only", ref, "--", "."], cwd=root)
    top = await spawn("git", ["rev-parse", "--show-toplevel"], cwd=root)
    base = Path(top.stdout.strip() or str(root))
    return {Path(os.path.normpath(base / line.strip())) for line in result.stdout.splitlines() if line.strip()}


def filter_changed(packages: Iterable[Package], files: Set[Path]) -> List[Package]:
    """Keep packages that contain at least one of ``files``."""
    selected = []
    for pkg in packages:
        directory = Path(os.path.normpath(pkg.directory))
        if any(directory in f.parents for f in files):
            selected.append(pkg)
    return selected
