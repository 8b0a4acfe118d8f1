"""Typed accessor over a package.json document.

The full document is kept as ``raw`` so fields this tool does not know about
survive a read/write round trip with their original order.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

from constants import Constants, DependencyTypes

logger = logging.getLogger(__name__)

_INDENT_RE = re.compile(r"^([ \t]+)\S", re.MULTILINE)
DEFAULT_INDENT = "  "


def detect_indent(text: str) -> str:
    """Return the indentation unit of the first indented line."""
    m = _INDENT_RE.search(text)
    return m.group(1) if m else DEFAULT_INDENT


class Manifest:
    """One package.json, loaded into memory."""

    def __init__(self, path: Union[str, Path], raw: Dict[str, Any], indent: str = DEFAULT_INDENT):
        self.path = Path(path)
        self.raw = raw
        self.indent = indent

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Manifest":
        """Read and parse a manifest file.

        Raises:
            OSError: If the file cannot be read.
            ValueError: If it is not a JSON object.
        """
        path = Path(path)
        with open(path, encoding="utf-8") as fh:
            text = fh.read()
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"{path} does not contain a JSON object")
        return cls(path, data, detect_indent(text))

    # ---------- typed fields ----------

    @property
    def name(self) -> str:
        return str(self.raw.get("name", ""))

    @property
    def version(self) -> str:
        return str(self.raw.get("version", ""))

    @property
    def private(self) -> bool:
        return bool(self.raw.get("private", False))

    @property
    def scripts(self) -> Dict[str, str]:
        return dict(self.raw.get("scripts") or {})

    @property
    def dependencies(self) -> Dict[str, str]:
        return self.get_dependency_map(DependencyTypes.DEPENDENCIES.value)

    @property
    def dev_dependencies(self) -> Dict[str, str]:
        return self.get_dependency_map(DependencyTypes.DEV_DEPENDENCIES.value)

    @property
    def peer_dependencies(self) -> Dict[str, str]:
        return self.get_dependency_map(DependencyTypes.PEER_DEPENDENCIES.value)

    @property
    def paired_version(self) -> Optional[str]:
        """Compatibility version carried next to the semantic version."""
        value = self.raw.get(Constants.PAIRED_VERSION_FIELD)
        return str(value) if value is not None else None

    @property
    def workspaces(self) -> list:
        """Workspace globs from ``workspaces`` (list or ``{packages: [...]}``)."""
        spec = self.raw.get("workspaces")
        if isinstance(spec, dict):
            spec = spec.get("packages")
        if spec is None:
            bolt = self.raw.get("bolt")
            if isinstance(bolt, dict):
                spec = bolt.get("workspaces")
        return [str(p) for p in spec] if isinstance(spec, list) else []

    def get_dependency_map(self, dep_type: str) -> Dict[str, str]:
        return dict(self.raw.get(dep_type) or {})

    def all_dependencies(self) -> Dict[str, str]:
        """Union of every dependency map; earlier maps win on duplicate names."""
        combined: Dict[str, str] = {}
        for dep_type in Constants.GRAPH_DEPENDENCY_TYPES:
            for name, spec in self.get_dependency_map(dep_type).items():
                combined.setdefault(name, spec)
        return combined

    def dependency_type_of(self, name: str) -> Optional[str]:
        for dep_type in Constants.GRAPH_DEPENDENCY_TYPES:
            if name in self.get_dependency_map(dep_type):
                return dep_type
        return None

    # ---------- mutation ----------

    def get_config(self) -> Dict[str, Any]:
        """Shallow copy of the full document."""
        return dict(self.raw)

    def set_dependency_range(self, name: str, dep_type: str, version_range: str) -> None:
        """Set one dependency range in memory; call :meth:`write` to persist."""
        deps = self.raw.get(dep_type)
        if not isinstance(deps, dict):
            deps = {}
            self.raw[dep_type] = deps
        deps[name] = version_range

    def serialize(self, config: Optional[Dict[str, Any]] = None) -> str:
        data = self.raw if config is None else config
        return json.dumps(data, indent=self.indent, ensure_ascii=False) + "\n"

    def write(self, config: Optional[Dict[str, Any]] = None) -> None:
        """Write ``config`` (or the current document) to :attr:`path`.

        The text lands in a temporary sibling first and is moved into place,
        so the path never names a partially written file.
        """
        if config is not None:
            self.raw = dict(config)
        text = self.serialize()
        directory = self.path.parent
        fd, tmp_path = tempfile.mkstemp(prefix=".package.", suffix=".json.tmp", dir=str(directory))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug("Wrote manifest %s", self.path)
