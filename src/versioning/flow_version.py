"""Compatibility-range metadata carried by typed-declaration packages.

The manifest field holds either ``"all"``, a flow-typed style range such as
``"v0.70.x-v0.89.x"`` / ``"v0.70.x-"`` / ``"-v0.89.x"`` / ``"v0.70.x"``, or a
plain npm range which is passed through.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

_BOUND = r"v?(\d+)\.(\d+|x)(?:\.(\d+|x))?"
_FLOW_RANGE = re.compile(rf"^\s*(?:{_BOUND})?\s*(-)?\s*(?:{_BOUND})?\s*$")


@dataclass(frozen=True)
class FlowVersionRange:
    """Parsed compatibility range."""

    kind: str  # "all" | "ranged" | "raw"
    lower: Optional[str] = None
    upper: Optional[str] = None
    raw: Optional[str] = None


def _render_bound(maj: str, minor: str, patch: Optional[str]) -> str:
    return f"{maj}.{minor}.{patch if patch is not None else 'x'}"


def parse_flow_version(value: Optional[str]) -> Optional[FlowVersionRange]:
    """Parse the manifest value; ``None`` or blank means no declared range."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if text.lower() in ("all", "*"):
        return FlowVersionRange(kind="all")

    m = _FLOW_RANGE.match(text)
    if not m or not text.lstrip().lower().startswith(("v", "-")) or (m.group(1) is None and m.group(5) is None):
        return FlowVersionRange(kind="raw", raw=text)

    lower = _render_bound(m.group(1), m.group(2), m.group(3)) if m.group(1) is not None else None
    upper = _render_bound(m.group(5), m.group(6), m.group(7)) if m.group(5) is not None else None
    if m.group(4) is None:
        # Single bound like "v0.70.x" pins to that line only
        return FlowVersionRange(kind="ranged", lower=lower, upper=lower)
    return FlowVersionRange(kind="ranged", lower=lower, upper=upper)


def to_semver_string(flow_range: FlowVersionRange) -> str:
    """Render a parsed range as an npm range for the checker binary."""
    if flow_range.kind == "all":
        return "latest"
    if flow_range.kind == "raw":
        return flow_range.raw or ""
    if flow_range.lower and flow_range.upper:
        if flow_range.lower == flow_range.upper:
            return flow_range.lower
        return f">={flow_range.lower} <={flow_range.upper}"
    if flow_range.lower:
        return f">={flow_range.lower}"
    return f"<={flow_range.upper}"
