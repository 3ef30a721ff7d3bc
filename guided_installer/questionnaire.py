from __future__ import annotations

import getpass
import logging
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple

from .errors import ConfirmationError, PreconditionError
from .lib.env import PATHS, Paths
from .lib.hwdetect import HardwareInfo
from .plan import DEFAULT_LOCALE, KEYMAPS, InstallPlan, is_valid_username

logger = logging.getLogger(__name__)

Option = Tuple[str, str]

MIRROR_OPTIONS: List[Option] = [
    ("auto", "Auto (reflector or default)"),
    ("stable", "Stable (kernel.org + geo)"),
    ("us", "Region: US (kernel.org + US)"),
    ("eu", "Region: EU (kernel.org + EU)"),
    ("asia", "Region: Asia (kernel.org + Asia)"),
]

GAMING_OPTIONS: List[Option] = [
    ("yes", "yes (install gaming packages & wide compatibility)"),
    ("maybe", "maybe (treat as yes)"),
    ("no", "no (minimal install)"),
]

WM_OPTIONS: List[Option] = [
    ("openbox", "openbox (lightweight floating + panel)"),
    ("i3", "i3 (tiling, keyboard-centric)"),
    ("dwm", "dwm (very minimal tiling)"),
    ("none", "none (server / no desktop)"),
]

THEME_OPTIONS: List[Option] = [
    ("Raven", "Raven (dark theme with green accents)"),
    ("Triste", "Triste (dark theme with red/burgundy accents)"),
]

VM_OPTIONS: List[Option] = [
    ("none", "none"),
    ("qemu", "qemu (qemu-guest-agent)"),
    ("vbox", "vbox (VirtualBox guest utils)"),
    ("vmware", "vmware (open-vm-tools)"),
]


class Prompter(Protocol):
    def menu(self, title: str, options: Sequence[Option], default: Optional[str] = None) -> str:
        ...

    def text(self, prompt: str, default: str = "") -> str:
        ...

    def secret(self, prompt: str) -> str:
        ...

    def confirm(self, prompt: str, default: bool = False) -> bool:
        ...

    def message(self, text: str) -> None:
        ...


class ConsolePrompter:
    """Plain terminal prompts. Menus accept either the number or the value."""

    def menu(self, title: str, options: Sequence[Option], default: Optional[str] = None) -> str:
        values = [v for v, _ in options]
        print(f"\n{title}")
        for i, (value, label) in enumerate(options, start=1):
            marker = "*" if value == default else " "
            print(f" {marker}{i:3d}) {label}")
        while True:
            raw = input(f"Choice [{default or values[0]}]: ").strip()
            if not raw:
                return default or values[0]
            if raw.isdigit() and 1 <= int(raw) <= len(values):
                return values[int(raw) - 1]
            if raw in values:
                return raw
            print("Invalid choice.")

    def text(self, prompt: str, default: str = "") -> str:
        suffix = f" [{default}]" if default else ""
        return input(f"{prompt}{suffix}: ").strip() or default

    def secret(self, prompt: str) -> str:
        return getpass.getpass(f"{prompt}: ")

    def confirm(self, prompt: str, default: bool = False) -> bool:
        hint = "Y/n" if default else "y/N"
        raw = input(f"{prompt} [{hint}]: ").strip().lower()
        if not raw:
            return default
        return raw in {"y", "yes"}

    def message(self, text: str) -> None:
        print(text)


def list_locales(supported: str = PATHS.supported_locales) -> List[str]:
    """UTF-8 locales the live system can generate, sorted and unique."""

    try:
        lines = Path(supported).read_text(encoding="utf-8").splitlines()
    except OSError:
        return [DEFAULT_LOCALE]
    found = sorted({ln.split()[0] for ln in lines if ln.strip().endswith("UTF-8") and ln.split()})
    return found or [DEFAULT_LOCALE]


# Alternate trees and aliases that are not zones an operator should pick.
_NON_REGIONS = {"posix", "right", "posixrules", "localtime", "Factory"}


def _is_zone_file(p: Path) -> bool:
    try:
        with open(p, "rb") as f:
            return f.read(4) == b"TZif"
    except OSError:
        return False


def list_timezone_regions(zoneinfo: str = PATHS.zoneinfo) -> List[str]:
    """Region directories plus top-level zones such as ``UTC``."""

    base = Path(zoneinfo)
    if not base.is_dir():
        return []
    out = []
    for p in base.iterdir():
        if p.name in _NON_REGIONS or p.suffix == ".tab":
            continue
        if p.is_dir() or (p.is_file() and _is_zone_file(p)):
            out.append(p.name)
    return sorted(out)


def list_timezone_cities(region: str, zoneinfo: str = PATHS.zoneinfo) -> List[str]:
    base = Path(zoneinfo) / region
    if not base.is_dir():
        return []
    return sorted(p.name for p in base.iterdir() if p.is_file())


def _options(values: Sequence[str]) -> List[Option]:
    return [(v, v) for v in values]


def _ask_timezone(prompter: Prompter, paths: Paths) -> str:
    regions = list_timezone_regions(paths.zoneinfo)
    if not regions:
        return prompter.text("Timezone (Region/City)", "UTC")
    region = prompter.menu("Choose timezone region:", _options(regions))
    cities = list_timezone_cities(region, paths.zoneinfo)
    if not cities:
        return region
    city = prompter.menu("Choose timezone city:", _options(cities))
    return f"{region}/{city}"


def _ask_username(prompter: Prompter) -> str:
    while True:
        username = prompter.text("Enter username (lowercase)", "user")
        if is_valid_username(username):
            return username
        prompter.message(
            f"Invalid username {username!r}: start with a lowercase letter or _, "
            "then up to 31 lowercase letters, digits, - or _."
        )


def _ask_password(prompter: Prompter, username: str) -> str:
    while True:
        first = prompter.secret(f"Enter password for {username}")
        second = prompter.secret(f"Re-enter password for {username}")
        if first and first == second:
            return first
        prompter.message("Passwords did not match (or were empty). Try again.")


def collect_plan(prompter: Prompter, hardware: HardwareInfo, paths: Paths = PATHS) -> InstallPlan:
    """Ask every question in order and return a confirmed plan.

    Nothing is touched here; the returned plan is the only output.
    """

    safe_mode = prompter.confirm(
        "Enable Safe Install Mode? (skips mirror optimization, limits parallel downloads, "
        "lowers installer CPU/IO priority)",
        default=False,
    )
    mirror_mode = prompter.menu("Select mirror source (if unsure, choose Auto):", MIRROR_OPTIONS, "auto")

    locales = list_locales(paths.supported_locales)
    locale = prompter.menu(
        "Choose system locale (UTF-8 preferred):",
        _options(locales),
        DEFAULT_LOCALE if DEFAULT_LOCALE in locales else locales[0],
    )
    keymap = prompter.menu("Choose keyboard layout:", _options(KEYMAPS), "us")
    timezone = _ask_timezone(prompter, paths)

    minimal = prompter.confirm(
        "Install only the chosen locale and strip other translations/docs/man pages to save disk space?",
        default=False,
    )
    gaming = prompter.menu("Will this device be used for gaming (now or maybe later)?", GAMING_OPTIONS, "no") != "no"
    wm = prompter.menu("Choose desktop/window manager:", WM_OPTIONS, "openbox")
    theme = ""
    if wm == "openbox":
        theme = prompter.menu("Choose Openbox theme (pairs with Breeze-Dark):", THEME_OPTIONS, "Raven")
    ssh = prompter.confirm("Enable SSH server in the installed system? (disabled by default for security)")
    vm = prompter.menu("Select VM guest tools to install (if any):", VM_OPTIONS, hardware.suggested_vm_variant)

    username = _ask_username(prompter)
    prompter.message(f"Keyboard layout set to: {keymap}. Ensure the layout is correct before entering the password.")
    password = _ask_password(prompter, username)

    disk_options = [(d.path, f"{d.size_label} {d.model}".strip()) for d in hardware.devices]
    if not disk_options:
        raise PreconditionError("No disks found.")
    device = prompter.menu("Select the disk to install to (THIS WILL BE ERASED):", disk_options)

    plan = InstallPlan(
        uefi=hardware.uefi,
        target_device=device,
        locale=locale,
        keymap=keymap,
        timezone=timezone,
        window_manager=wm,
        username=username,
        password=password,
        memory_mb=hardware.memory_mb,
        mirror_mode=mirror_mode,
        safe_mode=safe_mode,
        gaming=gaming,
        ssh_enabled=ssh,
        vm_variant=vm,
        openbox_theme=theme,
        minimal_footprint=minimal,
    )
    plan.validate()

    if not prompter.confirm(f"You selected {device}. THIS WILL ERASE ALL DATA ON THIS DISK. Continue?"):
        raise ConfirmationError("Aborted by user.")
    typed = prompter.text("Type the device path again to confirm (e.g. /dev/sda)")
    return plan.confirm(typed)
