"""``monolift publish``: publish every public package that is ahead of the registry.

Before publishing, each package's manifest is rewritten so internal
dependencies carry the dependency's compatibility version, and typing
packages gain peer ranges on the checker binary and on the package they
describe. The rewrite happens inside a mutation guard that is closed as
soon as that package's publish returns. A failed publish always puts
the original manifest back.
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from constants import Constants, DependencyTypes
from errors import PublishFailed, VersionInconsistency
from orchestration.mutation_guard import MutationRegistry, default_registry
from orchestration.task_runner import ConcurrencyPolicy
from registry import npm
from versioning.flow_version import to_semver_string
from versioning.semver_utils import compare, major
from workspace.package import Package
from workspace.project import Project, load_package

logger = logging.getLogger(__name__)


@dataclass
class PublishOptions:
    cwd: Optional[str] = None
    access: Optional[str] = None
    registry: Optional[str] = None
    policy: Optional[ConcurrencyPolicy] = None
    pre_publish: Optional[Callable[..., Any]] = None
    restore_after_publish: bool = False
    strict: bool = False
    mutations: Optional[MutationRegistry] = None


@dataclass
class PackageMeta:
    name: str
    new_version: str
    published: bool


@dataclass
class PublishCandidate:
    name: str
    primary_key: str
    local_version: str
    is_published: bool
    published_version: str = ""


@dataclass
class _Batch:
    published: List[PackageMeta] = field(default_factory=list)


def should_publish(candidate: PublishCandidate) -> bool:
    """Classify one candidate against the registry; logs the decision."""
    if not candidate.is_published or not candidate.published_version:
        return True
    order = compare(candidate.local_version, candidate.published_version)
    if order > 0:
        logger.info(
            "%s is at %s locally, %s is published; will publish",
            candidate.name,
            candidate.local_version,
            candidate.published_version,
        )
        return True
    if order < 0:
        logger.warning(
            "%s",
            VersionInconsistency(candidate.name, candidate.local_version, candidate.published_version),
        )
    return False


async def get_unpublished_packages(packages: List[Package], registry: Optional[str] = None) -> List[PublishCandidate]:
    """Query the registry for every package concurrently and keep the publishable ones."""
    if not packages:
        return []
    timeout = aiohttp.ClientTimeout(total=Constants.REQUEST_TIMEOUT)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        infos = await asyncio.gather(*(npm.info_allow_404(pkg.name, registry, session) for pkg in packages))

    candidates = [
        PublishCandidate(
            name=pkg.name,
            primary_key=pkg.primary_key,
            local_version=pkg.version,
            is_published=info.published,
            published_version=info.version or "",
        )
        for pkg, info in zip(packages, infos)
    ]
    return [c for c in candidates if should_publish(c)]


def set_tagged_dependencies(links: Dict[str, Package], pkg: Package) -> None:
    """Point each internal runtime dependency at the dependency's compatibility version."""
    declared = pkg.manifest.dependencies
    for dep_name, dep in links.items():
        paired = dep.manifest.paired_version
        if paired is None or dep_name not in declared:
            continue
        pkg.set_dependency_range(dep_name, DependencyTypes.DEPENDENCIES.value, paired)


def implementation_name(typing_name: str) -> Optional[str]:
    """``@flowtyped/react`` -> ``react``; ``@flowtyped/babel__core`` -> ``@babel/core``."""
    prefix = Constants.TYPING_PACKAGE_SCOPE + "/"
    if not typing_name.startswith(prefix):
        return None
    bare = typing_name[len(prefix):]
    scope, sep, name = bare.partition(Constants.TYPING_SCOPE_SEPARATOR)
    if sep and name:
        return f"@{scope}/{name}"
    return scope or None


def set_typing_dependencies(pkg: Package) -> None:
    """Add checker-binary and implementation peer ranges to typing packages."""
    flow_range = pkg.get_flow_version()
    checker_range = to_semver_string(flow_range) if flow_range is not None else None
    self_name = implementation_name(pkg.name)
    self_range = f"^{major(pkg.version)}.x"

    peer = DependencyTypes.PEER_DEPENDENCIES.value
    if checker_range:
        pkg.set_dependency_range(Constants.TYPE_CHECKER_BIN_PACKAGE, peer, checker_range)
    if self_name:
        pkg.set_dependency_range(self_name, peer, self_range)


async def _resolve_publish_dir(opts: PublishOptions, pkg: Package) -> Path:
    if opts.pre_publish is None:
        return pkg.directory
    remapped = opts.pre_publish(name=pkg.name, pkg=pkg)
    if inspect.isawaitable(remapped):
        remapped = await remapped
    return Path(remapped) if remapped else pkg.directory


async def publish(opts: Optional[PublishOptions] = None) -> List[PackageMeta]:
    """Publish what the registry does not have yet.

    Returns:
        One entry per package a publish was attempted for; empty when there
        is nothing to publish.

    Raises:
        PublishFailed: For any error during the batch, with the entries
            recorded before the failure.
    """
    opts = opts or PublishOptions()
    cwd = Path(opts.cwd or os.getcwd())
    mutations = opts.mutations or default_registry
    batch = _Batch()

    try:
        project = Project.init(cwd, strict=opts.strict)
        public_packages = [pkg for pkg in project.get_packages() if not pkg.private]
        if cwd.resolve() != project.dir.resolve():
            pkg = project.package_at(cwd) or load_package(cwd / Constants.PACKAGE_JSON_FILE)
            public_packages = [pkg] if not pkg.private else []
        graph = project.get_dependency_graph()

        unpublished_info = await get_unpublished_packages(public_packages, opts.registry)
        wanted = {info.primary_key for info in unpublished_info}
        unpublished = [pkg for pkg in public_packages if pkg.primary_key in wanted]

        if not unpublished:
            logger.warning("No unpublished packages to publish")
            return []

        async def publish_one(pkg: Package) -> PackageMeta:
            name = pkg.name
            version = pkg.version
            links = graph.paths_of(pkg)
            logger.info("Publishing %s at %s", name, version)
            publish_dir = await _resolve_publish_dir(opts, pkg)

            snapshot = copy.deepcopy(pkg.manifest.raw)
            with mutations.guard(pkg.manifest_path) as guard:
                try:
                    set_tagged_dependencies(links, pkg)
                    set_typing_dependencies(pkg)
                    pkg.manifest.write()
                    confirmation = await npm.publish(
                        name,
                        publish_dir,
                        registry=opts.registry,
                        access=opts.access,
                    )
                except BaseException:
                    pkg.manifest.raw = snapshot
                    raise
                meta = PackageMeta(name=name, new_version=version, published=confirmation.published)
                batch.published.append(meta)
                if opts.restore_after_publish or not confirmation.published:
                    guard.restore()
                    pkg.manifest.raw = snapshot
                else:
                    guard.commit()
            return meta

        await project.run_package_tasks(unpublished, opts.policy, publish_one)
        return list(batch.published)
    except Exception as exc:
        logger.error("%s", exc)
        raise PublishFailed(exc, batch.published) from exc
