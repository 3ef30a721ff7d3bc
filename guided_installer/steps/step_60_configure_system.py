from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..errors import CommandError
from ..lib import sysconfig
from ..lib.chroot import enable_service
from ..lib.templates import RenderResult, render_templates, theme_tokens
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)

COMPONENT = "configure"


@dataclass
class ConfigureResult:
    enabled: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    governor: Optional[str] = None
    removed_locales: List[str] = field(default_factory=list)
    theme: Optional[RenderResult] = None


def _top_level_entries(home: str, files: List[str]) -> List[str]:
    """``home/u/.config/gtk-3.0/settings.ini`` -> ``home/u/.config``, for chown -R."""
    out = set()
    for p in files:
        rest = p[len(home) + 1 :] if p.startswith(home + "/") else p
        out.add(f"{home}/{rest.split('/', 1)[0]}")
    return sorted(out)


class ConfigureSystemStep:
    """Configure the installed system from inside a chroot.

    Essential sub-steps propagate their error and abort the install. Optional
    ones are recorded as warnings, listed in ``ConfigureResult.failed`` and the
    stage moves on.
    """

    step_id = "60_configure_system"

    def run(self, ctx: InstallContext, results: Dict[str, Any]) -> ConfigureResult:
        plan = ctx.plan
        runner = ctx.runner
        root = ctx.target_root
        dry_run = ctx.dry_run
        res = ConfigureResult()

        def essential(label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
            out = fn(*args, **kwargs)
            ctx.actions.record(COMPONENT, label)
            return out

        def optional(label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
            try:
                out = fn(*args, **kwargs)
            except (CommandError, OSError) as e:
                msg = f"{label} failed: {e}"
                ctx.actions.warn(COMPONENT, msg)
                res.failed.append(label)
                res.warnings.append(msg)
                return None
            ctx.actions.record(COMPONENT, label)
            return out

        def succeeded(label: str) -> bool:
            return label not in res.failed

        def warn(msg: str) -> None:
            ctx.actions.warn(COMPONENT, msg)
            res.warnings.append(msg)

        essential(
            f"Locale {plan.locale}, keymap {plan.keymap}, timezone {plan.timezone}",
            sysconfig.configure_locale,
            runner,
            root,
            locale=plan.locale,
            keymap=plan.keymap,
            timezone=plan.timezone,
        )
        optional("Hardware clock sync", sysconfig.sync_hwclock, runner, root)

        essential(f"Hostname {plan.hostname}", sysconfig.configure_hostname, root, plan.hostname, dry_run=dry_run)

        essential(
            f"Created user {plan.username}",
            sysconfig.create_account,
            runner,
            root,
            username=plan.username,
            password=plan.password,
        )
        if plan.lock_root:
            essential("Locked root account", sysconfig.set_root_credential, runner, root, password="", lock=True)
        else:
            essential(
                "Root password set",
                sysconfig.set_root_credential,
                runner,
                root,
                password=plan.password,
                lock=False,
            )
            warn("root shares the user password; change it after first boot or reinstall with lock_root")

        essential("Enabled sudo for wheel", sysconfig.enable_wheel_sudo, root, dry_run=dry_run)

        for unit in sysconfig.CORE_SERVICES:
            optional(f"Enabled {unit}", enable_service, runner, root, unit)
            if succeeded(f"Enabled {unit}"):
                res.enabled.append(unit)

        optional("Firewall (ufw) enabled", sysconfig.configure_firewall, runner, root)
        if succeeded("Firewall (ufw) enabled"):
            res.enabled.append("ufw")

        if plan.low_memory:
            optional("zram swap configured", sysconfig.configure_zram, runner, root)

        res.governor = optional("CPU governor configured", sysconfig.configure_governor, runner, root, gaming=plan.gaming)
        if res.governor:
            res.enabled.append("cpupower")

        essential("fstab uses noatime", sysconfig.prefer_noatime, root, dry_run=dry_run)

        if plan.vm_variant != "none":
            unit = optional(f"VM guest tools ({plan.vm_variant})", sysconfig.enable_vm_guest, runner, root, plan.vm_variant)
            if unit:
                res.enabled.append(unit)

        ssh_label = "SSH enabled" if plan.ssh_enabled else "SSH disabled"
        optional(ssh_label, sysconfig.configure_ssh, runner, root, enabled=plan.ssh_enabled)
        if plan.ssh_enabled and succeeded(ssh_label):
            res.enabled.append("sshd")

        tokens = theme_tokens(
            username=plan.username,
            keymap=plan.keymap,
            window_manager=plan.window_manager,
            openbox_theme=plan.openbox_theme,
        )
        res.theme = optional(
            "Theme files rendered",
            render_templates,
            templates_dir=ctx.templates(),
            target_root=root,
            tokens=tokens,
            actions=ctx.actions,
            dry_run=dry_run,
        )
        owned = _top_level_entries(f"home/{plan.username}", res.theme.user_files if res.theme else [])
        optional("User directories created", sysconfig.create_user_dirs, runner, root, plan.username, owned)

        if plan.minimal_footprint:
            removed = optional("Minimal footprint applied", sysconfig.reduce_footprint, runner, root, language=plan.language)
            res.removed_locales = removed or []

        optional("Package cache cleaned", sysconfig.clean_package_cache, runner, root)
        optional("Machine id regenerated", sysconfig.regenerate_machine_id, runner, root)

        device = ctx.hardware.find_device(plan.target_device)
        if device is not None and not device.rotational:
            optional("Enabled fstrim.timer", sysconfig.enable_trim, runner, root)
            if succeeded("Enabled fstrim.timer"):
                res.enabled.append("fstrim.timer")

        logger.info("System configured (enabled=%s failed=%s)", ",".join(res.enabled), ",".join(res.failed) or "-")
        return res
