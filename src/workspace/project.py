"""Workspace root: package discovery, selection and task dispatch."""

from __future__ import annotations

import glob
import logging
import os
from pathlib import Path
from typing import List, Optional, Union

from constants import Constants
from errors import ManifestInvalid, WorkspaceNotFound
from orchestration.task_runner import ConcurrencyPolicy, Operation, TaskResult, TaskRunner
from .filters import FilterOptions, changed_files, filter_changed, filter_packages
from .graph import DependencyGraph
from .package import Package

logger = logging.getLogger(__name__)


def load_package(manifest_path: Union[str, Path]) -> Package:
    """Package.init, with read and parse failures raised as ManifestInvalid."""
    try:
        return Package.init(manifest_path)
    except (OSError, ValueError) as exc:
        raise ManifestInvalid(manifest_path, exc) from exc


def find_workspace_root(cwd: Union[str, Path]) -> Path:
    """Walk up from ``cwd`` to the outermost manifest that declares workspaces.

    Falls back to the nearest ``package.json`` when none declares workspaces.

    Raises:
        WorkspaceNotFound: If no ``package.json`` exists at or above ``cwd``.
    """
    current = Path(cwd).resolve()
    nearest: Optional[Path] = None
    root: Optional[Path] = None
    for directory in [current] + list(current.parents):
        manifest_path = directory / Constants.PACKAGE_JSON_FILE
        if not manifest_path.is_file():
            continue
        if nearest is None:
            nearest = directory
        try:
            if Package.init(manifest_path).manifest.workspaces:
                root = directory
        except (OSError, ValueError) as exc:
            logger.warning("Skipping unreadable manifest %s: %s", manifest_path, exc)
    if root is not None:
        return root
    if nearest is not None:
        return nearest
    raise WorkspaceNotFound(f"No {Constants.PACKAGE_JSON_FILE} found at or above {current}")


class Project:
    """The root package and its workspace members."""

    def __init__(self, pkg: Package, packages: List[Package], strict: bool = False):
        self.pkg = pkg
        self.dir = pkg.directory
        self.packages = packages
        self.strict = strict
        self._graph: Optional[DependencyGraph] = None

    @classmethod
    def init(cls, cwd: Union[str, Path], strict: bool = False) -> "Project":
        root = find_workspace_root(cwd)
        pkg = load_package(root / Constants.PACKAGE_JSON_FILE)
        packages = cls._discover(pkg)
        logger.info("Found %d workspace package(s) under %s", len(packages), root)
        return cls(pkg, packages, strict=strict)

    @staticmethod
    def _discover(root_pkg: Package) -> List[Package]:
        """Expand workspace globs into packages, in sorted, de-duplicated order."""
        seen = set()
        packages = []
        for pattern in root_pkg.manifest.workspaces:
            negate = pattern.startswith("!")
            if negate:
                continue
            matches = sorted(glob.glob(os.path.join(str(root_pkg.directory), pattern)))
            for match in matches:
                manifest_path = Path(match) / Constants.PACKAGE_JSON_FILE
                if not manifest_path.is_file():
                    continue
                key = os.path.normpath(str(manifest_path))
                if key in seen:
                    continue
                seen.add(key)
                packages.append(load_package(manifest_path))
        excluded = [p[1:] for p in root_pkg.manifest.workspaces if p.startswith("!")]
        if excluded:
            packages = [
                pkg
                for pkg in packages
                if not any(
                    Path(match).resolve() == pkg.directory.resolve()
                    for pattern in excluded
                    for match in glob.glob(os.path.join(str(root_pkg.directory), pattern))
                )
            ]
        return packages

    def get_packages(self) -> List[Package]:
        return list(self.packages)

    def get_dependency_graph(self) -> DependencyGraph:
        """Build the graph on first use; later calls return the same instance."""
        if self._graph is None:
            self._graph = DependencyGraph(self.packages, strict=self.strict)
        return self._graph

    def filter_packages(self, packages: List[Package], opts: FilterOptions) -> List[Package]:
        return filter_packages(packages, opts, self.dir)

    async def select_packages(self, opts: Optional[FilterOptions] = None) -> List[Package]:
        """Apply every criterion in ``opts``, including ``changed_since``."""
        opts = opts or FilterOptions()
        selected = self.filter_packages(self.packages, opts)
        if opts.changed_since:
            files = await changed_files(self.dir, opts.changed_since)
            selected = filter_changed(selected, files)
        return selected

    def package_at(self, cwd: Union[str, Path]) -> Optional[Package]:
        """The workspace package whose directory is ``cwd``, if any."""
        target = Path(cwd).resolve()
        for pkg in self.packages:
            if pkg.directory.resolve() == target:
                return pkg
        return None

    async def run_package_tasks(
        self,
        packages: List[Package],
        policy: Optional[ConcurrencyPolicy],
        operation: Operation,
    ) -> List[TaskResult]:
        runner = TaskRunner(policy, self.get_dependency_graph())
        return await runner.run(packages, operation)
