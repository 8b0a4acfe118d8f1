"""A single workspace member."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from constants import Constants
from versioning.flow_version import FlowVersionRange, parse_flow_version
from .manifest import Manifest


class Package:
    """A manifest plus the directory it lives in.

    Two packages may declare the same name; :attr:`primary_key` tells them
    apart everywhere a package is used as a key.
    """

    def __init__(self, manifest: Manifest):
        self.manifest = manifest
        self.manifest_path = manifest.path
        self.directory = manifest.path.parent
        self.node_modules_bin = self.directory.joinpath(*Constants.NODE_MODULES_BIN)

    @classmethod
    def init(cls, manifest_path: Union[str, Path]) -> "Package":
        return cls(Manifest.load(manifest_path))

    @property
    def name(self) -> str:
        return self.manifest.name

    @property
    def version(self) -> str:
        return self.manifest.version

    @property
    def private(self) -> bool:
        return self.manifest.private

    @property
    def primary_key(self) -> str:
        return f"{self.name}@{self.directory.as_posix()}"

    def get_flow_version(self) -> Optional[FlowVersionRange]:
        return parse_flow_version(self.manifest.paired_version)

    def set_dependency_range(self, name: str, dep_type: str, version_range: str) -> None:
        self.manifest.set_dependency_range(name, dep_type, version_range)

    def __repr__(self) -> str:
        return f"Package({self.name!r}, {self.version!r}, {str(self.directory)!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Package) and other.primary_key == self.primary_key

    def __hash__(self) -> int:
        return hash(self.primary_key)
