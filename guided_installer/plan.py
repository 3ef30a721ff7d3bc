from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict

from .errors import ConfirmationError, PreconditionError
from .lib.hwdetect import LOW_MEMORY_MB
from .lib.mirrors import MIRROR_MODES

WINDOW_MANAGERS = ("openbox", "i3", "dwm", "none")
OPENBOX_THEMES = ("Raven", "Triste")
VM_VARIANTS = ("none", "qemu", "vbox", "vmware")
KEYMAPS = ("us", "uk", "de", "fr", "es", "it", "br", "ru", "jp")

DEFAULT_LOCALE = "en_US.UTF-8"
DEFAULT_HOSTNAME = "arch-custom"

_USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")


def is_valid_username(name: str) -> bool:
    return bool(_USERNAME_RE.match(name or ""))


@dataclass(frozen=True)
class InstallPlan:
    """Every operator/environment decision, fixed before anything is erased.

    Instances are immutable. ``confirm`` returns a confirmed copy; nothing
    downstream ever writes back into a plan.
    """

    uefi: bool
    target_device: str
    locale: str
    keymap: str
    timezone: str
    window_manager: str
    username: str
    password: str = field(repr=False)
    memory_mb: int = 0
    mirror_mode: str = "auto"
    safe_mode: bool = False
    gaming: bool = False
    ssh_enabled: bool = False
    vm_variant: str = "none"
    openbox_theme: str = ""
    minimal_footprint: bool = False
    hostname: str = DEFAULT_HOSTNAME
    lock_root: bool = False
    confirmed: bool = False

    @property
    def low_memory(self) -> bool:
        return self.memory_mb < LOW_MEMORY_MB

    @property
    def language(self) -> str:
        """Base language of the locale: ``de_DE.UTF-8`` -> ``de``."""
        return self.locale.split(".", 1)[0].split("@", 1)[0].split("_", 1)[0]

    def validate(self) -> None:
        problems = []
        if not self.target_device:
            problems.append("target device is empty")
        if not is_valid_username(self.username):
            problems.append(f"invalid username {self.username!r} (lowercase letters, digits, - and _)")
        if not self.password:
            problems.append("password is empty")
        if self.window_manager not in WINDOW_MANAGERS:
            problems.append(f"unknown window manager {self.window_manager!r}")
        if self.openbox_theme and self.openbox_theme not in OPENBOX_THEMES:
            problems.append(f"unknown Openbox theme {self.openbox_theme!r}")
        if self.vm_variant not in VM_VARIANTS:
            problems.append(f"unknown VM variant {self.vm_variant!r}")
        if self.mirror_mode not in MIRROR_MODES:
            problems.append(f"unknown mirror mode {self.mirror_mode!r}")
        if not self.locale or not self.timezone or not self.keymap:
            problems.append("locale, timezone and keymap are required")
        if problems:
            raise PreconditionError("Invalid install plan: " + "; ".join(problems))

    def confirm(self, typed_device: str) -> "InstallPlan":
        """The one irreversible gate: the device path must be retyped exactly."""

        if typed_device != self.target_device:
            raise ConfirmationError("Device confirmation mismatch. Aborting.")
        self.validate()
        return replace(self, confirmed=True)

    def public_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d.pop("password", None)
        d["low_memory"] = self.low_memory
        return d
