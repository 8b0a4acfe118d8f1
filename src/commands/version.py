"""``monolift version``: bump the patch version of public workspace packages."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

from constants import Constants
from orchestration.mutation_guard import MutationRegistry, default_registry
from orchestration.task_runner import ConcurrencyPolicy
from versioning.semver_utils import increment_patch
from workspace.filters import FilterOptions
from workspace.package import Package
from workspace.project import Project, load_package

logger = logging.getLogger(__name__)


@dataclass
class VersionOptions:
    cwd: Optional[str] = None
    filter_opts: FilterOptions = field(default_factory=FilterOptions)
    policy: Optional[ConcurrencyPolicy] = None
    strict: bool = False
    mutations: Optional[MutationRegistry] = None


@dataclass
class BumpResult:
    name: str
    old_version: str
    new_version: str


def to_version_options(args: Any, policy: Optional[ConcurrencyPolicy] = None) -> VersionOptions:
    return VersionOptions(
        cwd=getattr(args, "CWD", None),
        filter_opts=FilterOptions.from_args(args),
        policy=policy,
    )


def _packages_for_cwd(project: Project, cwd: Path, selected: List[Package]) -> List[Package]:
    """Inside a member directory only that member is versioned."""
    if cwd.resolve() == project.dir.resolve():
        candidates = selected
    else:
        pkg = project.package_at(cwd) or load_package(cwd / Constants.PACKAGE_JSON_FILE)
        candidates = [pkg]
    return [pkg for pkg in candidates if not pkg.private]


async def version(opts: VersionOptions) -> List[BumpResult]:
    """Bump every selected public package by the number of same-named packages.

    Each manifest is rewritten inside a mutation guard; only ``version``
    changes, every other field passes through.
    """
    cwd = Path(opts.cwd or os.getcwd())
    mutations = opts.mutations or default_registry
    project = Project.init(cwd, strict=opts.strict)
    selected = await project.select_packages(opts.filter_opts)
    public_packages = _packages_for_cwd(project, cwd, selected)
    graph = project.get_dependency_graph()

    async def bump(pkg: Package) -> BumpResult:
        name = pkg.name
        old_version = pkg.version
        size = len(graph.packages_by_name.get(name) or [pkg])
        new_version = increment_patch(old_version, size)

        with mutations.guard(pkg.manifest_path):
            pkg.manifest.write({**pkg.manifest.get_config(), "version": new_version})

        logger.info("%s: %s -> %s", name, old_version, new_version)
        return BumpResult(name=name, old_version=old_version, new_version=new_version)

    results = await project.run_package_tasks(public_packages, opts.policy, bump)
    return [r.value for r in results]
