"""Workspace model: manifests, packages, the dependency graph and the project root."""

from .manifest import Manifest
from .package import Package
from .graph import DependencyGraph, Edge
from .filters import FilterOptions
from .project import Project, find_workspace_root

__all__ = [
    "Manifest",
    "Package",
    "DependencyGraph",
    "Edge",
    "FilterOptions",
    "Project",
    "find_workspace_root",
]
