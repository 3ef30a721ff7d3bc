from __future__ import annotations

import logging
from dataclasses import dataclass

from ..actions import ActionLog
from .chroot import chroot_cmd
from .command import CommandRunner

logger = logging.getLogger(__name__)

COMPONENT = "bootloader"

BOOTLOADER_ID = "Arch"
GRUB_CFG = "/boot/grub/grub.cfg"


@dataclass(frozen=True)
class BootloaderResult:
    uefi: bool
    target: str
    config: str = GRUB_CFG


def grub_install_argv(*, uefi: bool, disk: str) -> list[str]:
    if uefi:
        # The ESP is mounted at /boot in the target.
        return [
            "grub-install",
            "--target=x86_64-efi",
            "--efi-directory=/boot",
            f"--bootloader-id={BOOTLOADER_ID}",
            "--recheck",
        ]
    return ["grub-install", "--target=i386-pc", disk]


def install_bootloader(
    runner: CommandRunner,
    target_root: str,
    *,
    uefi: bool,
    disk: str,
    actions: ActionLog,
) -> BootloaderResult:
    """Install GRUB for the firmware mode and generate its config. Failures are fatal."""

    actions.record(COMPONENT, f"Installing GRUB ({'UEFI' if uefi else 'BIOS'} on {disk})")
    chroot_cmd(runner, target_root, grub_install_argv(uefi=uefi, disk=disk))
    chroot_cmd(runner, target_root, ["grub-mkconfig", "-o", GRUB_CFG])
    actions.record(COMPONENT, f"GRUB installed; config written to {GRUB_CFG}")
    logger.info("GRUB installed (uefi=%s)", uefi)
    return BootloaderResult(uefi=uefi, target="x86_64-efi" if uefi else "i386-pc")
