"""Semantic-version helpers built on ``semantic_version``."""

from __future__ import annotations

from typing import Optional

import semantic_version


def parse_version(text: str) -> semantic_version.Version:
    """Parse a strict semantic version, tolerating a leading ``v``."""
    return semantic_version.Version(text.strip().lstrip("vV"))


def increment_patch(version: str, amount: int = 1) -> str:
    """Add ``amount`` to the patch component, keeping prerelease and build."""
    current = parse_version(version)
    bumped = semantic_version.Version(
        major=current.major,
        minor=current.minor,
        patch=current.patch + amount,
        prerelease=current.prerelease,
        build=current.build,
    )
    return str(bumped)


def compare(left: str, right: str) -> int:
    """Return -1, 0 or 1 as ``left`` is lower, equal or higher than ``right``."""
    a, b = parse_version(left), parse_version(right)
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def major(version: str) -> int:
    return parse_version(version).major


def satisfies(version: str, spec: Optional[str]) -> bool:
    """Check ``version`` against an npm range; unparsable input never matches."""
    if not spec or spec.strip() in ("*", "", "latest"):
        return True
    try:
        npm_spec = semantic_version.NpmSpec(spec.strip())
        return npm_spec.match(parse_version(version))
    except ValueError:
        return False
