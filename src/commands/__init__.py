"""Workspace commands built on the project model and the task runner."""

from .version import BumpResult, VersionOptions, version
from .publish import PackageMeta, PublishOptions, publish
from .run import run_script

__all__ = [
    "BumpResult",
    "VersionOptions",
    "version",
    "PackageMeta",
    "PublishOptions",
    "publish",
    "run_script",
]
