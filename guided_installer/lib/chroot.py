from __future__ import annotations

import logging
from typing import Sequence

from .command import CmdResult, CommandRunner

logger = logging.getLogger(__name__)


def chroot_cmd(
    runner: CommandRunner,
    target_root: str,
    argv: Sequence[str],
    *,
    check: bool = True,
    input_text: str | None = None,
) -> CmdResult:
    """Run a command inside the target root.

    arch-chroot sets up /dev, /proc, /sys and resolv.conf for the duration of
    the call and tears them down afterwards.
    """

    return runner.run(["arch-chroot", target_root, *argv], check=check, input_text=input_text)


def enable_service(runner: CommandRunner, target_root: str, unit: str, *, check: bool = True) -> CmdResult:
    return chroot_cmd(runner, target_root, ["systemctl", "enable", unit], check=check)


def disable_service(runner: CommandRunner, target_root: str, unit: str, *, check: bool = False) -> CmdResult:
    return chroot_cmd(runner, target_root, ["systemctl", "disable", unit], check=check)


def pacman_install(runner: CommandRunner, target_root: str, packages: Sequence[str], *, check: bool = True) -> CmdResult:
    return chroot_cmd(runner, target_root, ["pacman", "-S", "--noconfirm", "--needed", *packages], check=check)
