from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml


def _package_root() -> Path:
    # guided_installer/lib/manifests.py -> guided_installer
    return Path(__file__).resolve().parents[1]


def load_yaml(path: Path) -> Dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Manifest must be a mapping/dict: {path}")
    return data


def load_yaml_rel(rel_path: str) -> Dict[str, Any]:
    """Load a YAML file shipped inside the package (manifests/...)."""
    return load_yaml(_package_root() / rel_path.lstrip("/"))


def load_package_catalog() -> Dict[str, Any]:
    return load_yaml_rel("manifests/packages.yaml")
