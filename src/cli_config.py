"""Configuration file loading and runtime settings for the CLI.

Precedence, lowest first: YAML config file, ``--set KEY=VALUE`` overrides,
explicit CLI flags.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import yaml

from constants import Constants, OrderModes
from errors import ConfigError

logger = logging.getLogger(__name__)

_KNOWN_KEYS = {"registry", "access", "concurrency", "order", "restore_after_publish", "strict"}


def find_config_file(root: Union[str, Path]) -> Optional[Path]:
    for name in Constants.CONFIG_FILES:
        candidate = Path(root) / name
        if candidate.is_file():
            return candidate
    return None


def load_config(config_path: Optional[Union[str, Path]], root: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """Load settings from YAML.

    Args:
        config_path: Explicit file; when None the workspace root is searched
            for ``.monolift.yml`` / ``.monolift.yaml``.
        root: Directory searched when no explicit path is given.

    Returns:
        The ``monolift`` section if present, else the whole mapping.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    path: Optional[Path] = Path(config_path) if config_path else None
    if path is None and root is not None:
        path = find_config_file(root)
    if path is None:
        return {}
    if not path.is_file():
        logger.warning("Config file not found: %s", path)
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    section = data.get("monolift", data)
    if not isinstance(section, dict):
        raise ConfigError(f"'monolift' section of {path} must be a mapping")
    unknown = sorted(set(section) - _KNOWN_KEYS)
    if unknown:
        logger.warning("Ignoring unknown config key(s): %s", ", ".join(unknown))
    logger.debug("Loaded config from %s", path)
    return dict(section)


def apply_overrides(config: Dict[str, Any], overrides: Iterable[str]) -> Dict[str, Any]:
    """Apply ``KEY=VALUE`` items; values are parsed as YAML scalars."""
    merged = dict(config)
    for item in overrides or []:
        key, sep, raw = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigError(f"Invalid override '{item}' (expected KEY=VALUE)")
        try:
            merged[key] = yaml.safe_load(raw) if raw.strip() else ""
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid value for '{key}': {exc}") from exc
    return merged


@dataclass
class RuntimeSettings:
    """Effective settings for one CLI invocation."""

    registry: Optional[str] = None
    access: Optional[str] = None
    concurrency: Optional[int] = None
    order: str = OrderModes.PARALLEL.value
    restore_after_publish: bool = False
    strict: bool = False

    @classmethod
    def from_sources(cls, config: Dict[str, Any], args: Any = None) -> "RuntimeSettings":
        settings = cls()
        for key in _KNOWN_KEYS:
            if key in config and config[key] is not None:
                setattr(settings, key, config[key])

        cli = {
            "registry": getattr(args, "REGISTRY", None),
            "access": getattr(args, "ACCESS", None),
            "concurrency": getattr(args, "CONCURRENCY", None),
            "order": getattr(args, "ORDER", None),
        }
        for key, value in cli.items():
            if value is not None:
                setattr(settings, key, value)

        if settings.concurrency is not None:
            try:
                settings.concurrency = int(settings.concurrency)
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"concurrency must be an integer, got {settings.concurrency!r}") from exc
        if settings.access is not None and settings.access not in Constants.ACCESS_LEVELS:
            raise ConfigError(f"access must be one of {', '.join(Constants.ACCESS_LEVELS)}")
        settings.restore_after_publish = bool(settings.restore_after_publish)
        settings.strict = bool(settings.strict)
        return settings


def config_root(args: Any) -> Path:
    return Path(getattr(args, "CWD", None) or os.getcwd())
