"""Version arithmetic and compatibility-range helpers."""

from .semver_utils import compare, increment_patch, major, parse_version, satisfies
from .flow_version import FlowVersionRange, parse_flow_version, to_semver_string

__all__ = [
    "compare",
    "increment_patch",
    "major",
    "parse_version",
    "satisfies",
    "FlowVersionRange",
    "parse_flow_version",
    "to_semver_string",
]
