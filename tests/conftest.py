"""Shared fixtures: throwaway workspaces on disk."""

import json
from pathlib import Path

import pytest


def write_manifest(directory, data, indent=2):
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "package.json"
    path.write_text(json.dumps(data, indent=indent) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def make_workspace(tmp_path):
    """Build ``root/package.json`` plus one manifest per ``packages`` entry.

    ``packages`` maps a directory relative to the root to manifest data.
    """

    def _make(packages, workspaces=("packages/*",), root_extra=None):
        root = tmp_path / "repo"
        root_data = {"name": "root", "private": True, "workspaces": list(workspaces)}
        root_data.update(root_extra or {})
        write_manifest(root, root_data)
        for rel, data in packages.items():
            write_manifest(root / rel, data)
        return root

    return _make
