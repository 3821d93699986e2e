"""YAML loader for the risk-profile tables shipped with the package."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from drawdownplan.utils.exceptions import ConfigError

PACKAGE_ROOT = Path(__file__).resolve().parent.parent


def load_yaml(path: Path) -> dict[str, Any]:
    """Parse a YAML file whose top level is a mapping.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Cannot parse {path.name}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must contain a mapping, got {type(data).__name__}")
    return data


def load_package_yaml(relative_path: str) -> dict[str, Any]:
    """Load a mapping from a YAML file under ``src/drawdownplan/``.

    Args:
        relative_path: e.g. ``"config/tables/profiles.yaml"``.
    """
    return load_yaml(PACKAGE_ROOT / relative_path)
