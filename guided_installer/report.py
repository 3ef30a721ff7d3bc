from __future__ import annotations

import logging
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, Mapping

from .actions import ActionLog
from .lib.hwdetect import HardwareInfo
from .plan import InstallPlan

logger = logging.getLogger(__name__)


def _plain(value: Any) -> Any:
    """Dataclass results -> plain YAML-safe values."""
    if is_dataclass(value) and not isinstance(value, type):
        return _plain(asdict(value))
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def build_summary(
    *,
    plan: InstallPlan,
    hardware: HardwareInfo,
    results: Mapping[str, Any],
    actions: ActionLog,
) -> Dict[str, Any]:
    """Structured record of the run, written into the installed system."""

    return {
        "plan": plan.public_dict(),
        "hardware": hardware.as_dict(),
        "steps": {step_id: _plain(res) for step_id, res in results.items()},
        "warnings": [r.message for r in actions.warnings()],
    }


def render_summary(plan: InstallPlan, *, log_path: str) -> str:
    desktop = plan.window_manager
    if plan.window_manager == "openbox" and plan.openbox_theme:
        desktop = f"openbox ({plan.openbox_theme} theme)"

    lines = [
        "",
        "Installation complete.",
        "",
        f"  User:      {plan.username}",
        f"  Locale:    {plan.locale}",
        f"  Keyboard:  {plan.keymap}",
        f"  Timezone:  {plan.timezone}",
        f"  Desktop:   {desktop}",
        f"  Memory:    {plan.memory_mb} MB" + (" (low-memory optimizations applied)" if plan.low_memory else ""),
        f"  Log:       {log_path}",
        "",
        "Remove the installation media and reboot.",
    ]
    return "\n".join(lines)
