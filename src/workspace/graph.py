"""Internal dependency graph of a workspace.

The graph is a directed multigraph keyed by package primary key. It is not
required to be acyclic: peer and dev relations routinely form cycles, and a
package may list itself (typing companions do). Consumers use it for lookup
and for best-effort wave scheduling, never as a correctness gate.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from common.logging_utils import extra_context, is_debug_enabled
from versioning.semver_utils import satisfies
from .package import Package

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Edge:
    """``source`` declares ``name@range`` which resolved to ``target``."""

    source: str
    target: str
    name: str
    range: str
    dep_type: str


class DependencyGraph:
    """Graph built once from the full package list; read-only afterwards."""

    def __init__(self, packages: Iterable[Package], strict: bool = False):
        self.strict = strict
        self.packages: "OrderedDict[str, Package]" = OrderedDict()
        self.packages_by_name: Dict[str, List[Package]] = {}
        self.edges: List[Edge] = []
        self._links: Dict[str, Dict[str, Package]] = {}
        self._dependents: Dict[str, Dict[str, Package]] = {}
        self.paths: Dict[Path, Dict[str, Package]] = {}

        for pkg in packages:
            self.packages[pkg.primary_key] = pkg
            self.packages_by_name.setdefault(pkg.name, []).append(pkg)
        self._build()

    def _resolve(self, name: str, version_range: str) -> Optional[Package]:
        """Pick the internal package a dependency entry refers to."""
        candidates = self.packages_by_name.get(name)
        if not candidates:
            return None
        for candidate in candidates:
            if satisfies(candidate.version, version_range):
                return candidate
        if self.strict:
            if is_debug_enabled(logger):
                logger.debug(
                    "Range %s for %s not satisfied internally; treating as external",
                    version_range,
                    name,
                    extra=extra_context(event="graph_resolve", outcome="range_mismatch"),
                )
            return None
        return candidates[0]

    def _build(self) -> None:
        for key, pkg in self.packages.items():
            links: Dict[str, Package] = {}
            for name, version_range in pkg.manifest.all_dependencies().items():
                target = self._resolve(name, version_range)
                if target is None:
                    continue
                links[name] = target
                self.edges.append(
                    Edge(
                        source=key,
                        target=target.primary_key,
                        name=name,
                        range=version_range,
                        dep_type=pkg.manifest.dependency_type_of(name) or "",
                    )
                )
                self._dependents.setdefault(target.primary_key, {})[key] = pkg
            self._links[key] = links
            self.paths[pkg.manifest_path] = links

        logger.debug(
            "Dependency graph built: %d packages, %d internal edges",
            len(self.packages),
            len(self.edges),
        )

    # ---------- views ----------

    def links_of(self, pkg: Package) -> Dict[str, Package]:
        """Internal dependencies of ``pkg`` by declared dependency name."""
        return dict(self._links.get(pkg.primary_key, {}))

    def paths_of(self, pkg: Package) -> Dict[str, Package]:
        return dict(self.paths.get(pkg.manifest_path, {}))

    def dependents_of(self, pkg: Package) -> List[Package]:
        """Packages that resolve one of their dependencies to ``pkg``."""
        return list(self._dependents.get(pkg.primary_key, {}).values())

    def get(self, primary_key: str) -> Optional[Package]:
        return self.packages.get(primary_key)

    def batches(self, selection: Iterable[Package]) -> List[List[Package]]:
        """Split ``selection`` into waves where dependencies come first.

        Only edges between selected packages count. Self loops are ignored,
        and when only cycle members remain they all go into one wave.
        """
        remaining: "OrderedDict[str, Package]" = OrderedDict((p.primary_key, p) for p in selection)
        waves: List[List[Package]] = []
        while remaining:
            ready = []
            for key, pkg in remaining.items():
                blockers = [
                    dep.primary_key
                    for dep in self._links.get(key, {}).values()
                    if dep.primary_key != key and dep.primary_key in remaining
                ]
                if not blockers:
                    ready.append(pkg)
            if not ready:
                logger.debug("Cycle among %s; scheduling together", ", ".join(p.name for p in remaining.values()))
                ready = list(remaining.values())
            for pkg in ready:
                del remaining[pkg.primary_key]
            waves.append(ready)
        return waves

    def __len__(self) -> int:
        return len(self.packages)
