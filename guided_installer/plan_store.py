from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from .errors import PreconditionError
from .lib.hwdetect import HardwareInfo
from .plan import DEFAULT_HOSTNAME, DEFAULT_LOCALE, OPENBOX_THEMES, InstallPlan

logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off", ""}


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to YAML for unknown extensions; it also reads JSON.
    return "yaml"


def load_answers(path: str) -> Dict[str, Any]:
    """Read an unattended answers file (YAML or JSON by extension)."""

    p = Path(path)
    if not p.exists():
        raise PreconditionError(f"Answers file not found: {path}")

    text = p.read_text(encoding="utf-8")
    try:
        if _detect_format(p) == "json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (ValueError, yaml.YAMLError) as e:
        raise PreconditionError(f"Answers file {path} is not valid: {e}") from e

    if not isinstance(data, dict):
        raise PreconditionError(f"Answers file must be a mapping, got {type(data).__name__}")
    return data


def save_summary(path: str, summary: Dict[str, Any], *, dry_run: bool = False) -> None:
    p = Path(path)
    if dry_run:
        logger.info("Would write %s", str(p))
        return
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) == "json":
        p.write_text(json.dumps(summary, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    else:
        p.write_text(yaml.safe_dump(summary, sort_keys=False) + "\n", encoding="utf-8")


def _as_bool(raw: Any, key: str) -> bool:
    if isinstance(raw, bool):
        return raw
    s = str(raw if raw is not None else "").strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise PreconditionError(f"Answer {key!r} must be yes/no, got {raw!r}")


def plan_from_answers(answers: Dict[str, Any], hardware: HardwareInfo) -> InstallPlan:
    """Build and confirm a plan from an answers mapping.

    ``confirm_device`` stands in for the typed confirmation and must equal
    ``target_device`` exactly.
    """

    device = str(answers.get("target_device") or "").strip()
    if not device:
        raise PreconditionError("Answers file has no target_device")
    if hardware.find_device(device) is None:
        known = ", ".join(d.path for d in hardware.devices)
        raise PreconditionError(f"target_device {device} is not an installable disk (found: {known})")

    wm = str(answers.get("window_manager") or "openbox")
    theme = str(answers.get("openbox_theme") or "")
    if wm == "openbox" and not theme:
        theme = OPENBOX_THEMES[0]
    elif wm != "openbox":
        theme = ""

    plan = InstallPlan(
        uefi=hardware.uefi,
        target_device=device,
        locale=str(answers.get("locale") or DEFAULT_LOCALE),
        keymap=str(answers.get("keymap") or "us"),
        timezone=str(answers.get("timezone") or "UTC"),
        window_manager=wm,
        username=str(answers.get("username") or ""),
        password=str(answers.get("password") or ""),
        memory_mb=hardware.memory_mb,
        mirror_mode=str(answers.get("mirror_mode") or "auto"),
        safe_mode=_as_bool(answers.get("safe_mode", False), "safe_mode"),
        gaming=_as_bool(answers.get("gaming", False), "gaming"),
        ssh_enabled=_as_bool(answers.get("ssh_enabled", False), "ssh_enabled"),
        vm_variant=str(answers.get("vm_variant") or hardware.suggested_vm_variant),
        openbox_theme=theme,
        minimal_footprint=_as_bool(answers.get("minimal_footprint", False), "minimal_footprint"),
        hostname=str(answers.get("hostname") or DEFAULT_HOSTNAME),
        lock_root=_as_bool(answers.get("lock_root", False), "lock_root"),
    )
    return plan.confirm(str(answers.get("confirm_device") or ""))
