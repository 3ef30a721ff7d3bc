from __future__ import annotations

import logging
import shutil
from typing import List, Optional, Sequence

from .chroot import chroot_cmd, disable_service, enable_service, pacman_install
from .command import CommandRunner
from .files import read_file, target_path, write_file

logger = logging.getLogger(__name__)

CORE_SERVICES = ("NetworkManager", "systemd-timesyncd", "cups", "udisks2", "bluetooth")
USER_GROUPS = ("wheel", "audio", "video", "input")
USER_DIRS = ("Pictures", "Documents", "Downloads", "Desktop", "Music", "Videos")

VM_GUEST_UNITS = {
    "qemu": "qemu-guest-agent",
    "vbox": "vboxservice",
    "vmware": "vmtoolsd",
}

CONSOLE_FONT = "lat9w-16"

ZRAM_CONF = """[zram0]
zram-size = ram / 2
compression-algorithm = lz4
"""

FOOTPRINT_PACKAGES = ("man-db", "man-pages", "texinfo")
DOC_DIRS = ("usr/share/doc", "usr/share/info", "usr/share/gtk-doc")


def configure_locale(runner: CommandRunner, root: str, *, locale: str, keymap: str, timezone: str) -> None:
    dry_run = runner.dry_run
    write_file(root, "etc/locale.gen", f"{locale} UTF-8\n", append=True, dry_run=dry_run)
    chroot_cmd(runner, root, ["locale-gen"])
    write_file(root, "etc/locale.conf", f"LANG={locale}\n", dry_run=dry_run)
    write_file(root, "etc/vconsole.conf", f"KEYMAP={keymap}\nFONT={CONSOLE_FONT}\n", dry_run=dry_run)
    chroot_cmd(runner, root, ["ln", "-sf", f"/usr/share/zoneinfo/{timezone}", "/etc/localtime"])


def sync_hwclock(runner: CommandRunner, root: str) -> None:
    chroot_cmd(runner, root, ["hwclock", "--systohc"])


def configure_hostname(root: str, hostname: str, *, dry_run: bool = False) -> None:
    write_file(root, "etc/hostname", hostname + "\n", dry_run=dry_run)
    write_file(
        root,
        "etc/hosts",
        "\n".join(
            [
                "127.0.0.1\tlocalhost",
                "::1\t\tlocalhost",
                f"127.0.1.1\t{hostname}",
                "",
            ]
        ),
        dry_run=dry_run,
    )


def create_account(runner: CommandRunner, root: str, *, username: str, password: str) -> None:
    chroot_cmd(runner, root, ["useradd", "-m", "-G", ",".join(USER_GROUPS), "-s", "/bin/bash", username])
    chroot_cmd(runner, root, ["chpasswd"], input_text=f"{username}:{password}\n")


def set_root_credential(runner: CommandRunner, root: str, *, password: str, lock: bool) -> None:
    if lock:
        chroot_cmd(runner, root, ["passwd", "-l", "root"])
    else:
        chroot_cmd(runner, root, ["chpasswd"], input_text=f"root:{password}\n")


def enable_wheel_sudo(root: str, *, dry_run: bool = False) -> None:
    write_file(root, "etc/sudoers.d/10-wheel", "%wheel ALL=(ALL:ALL) ALL\n", mode=0o440, dry_run=dry_run)


def configure_firewall(runner: CommandRunner, root: str) -> None:
    pacman_install(runner, root, ["ufw"])
    chroot_cmd(runner, root, ["ufw", "default", "deny", "incoming"])
    chroot_cmd(runner, root, ["ufw", "default", "allow", "outgoing"])
    # ufw needs the running kernel's netfilter; enabling may fail inside a chroot
    chroot_cmd(runner, root, ["ufw", "--force", "enable"], check=False)
    enable_service(runner, root, "ufw")


def configure_zram(runner: CommandRunner, root: str) -> None:
    pacman_install(runner, root, ["systemd-zram-generator"])
    write_file(root, "etc/systemd/zram-generator.conf", ZRAM_CONF, dry_run=runner.dry_run)


def governor_for(gaming: bool) -> str:
    return "performance" if gaming else "ondemand"


def configure_governor(runner: CommandRunner, root: str, *, gaming: bool) -> str:
    governor = governor_for(gaming)
    pacman_install(runner, root, ["cpupower"])
    write_file(root, "etc/default/cpupower", f"GOVERNOR={governor}\n", dry_run=runner.dry_run)
    enable_service(runner, root, "cpupower")
    return governor


def prefer_noatime(root: str, *, dry_run: bool = False) -> int:
    """Swap ``relatime`` for ``noatime`` in the target fstab; returns the count replaced."""

    text = read_file(root, "etc/fstab")
    if text is None:
        if dry_run:
            return 0
        raise FileNotFoundError(str(target_path(root, "etc/fstab")))
    count = text.count("relatime")
    if count:
        write_file(root, "etc/fstab", text.replace("relatime", "noatime"), dry_run=dry_run)
    return count


def enable_vm_guest(runner: CommandRunner, root: str, variant: str) -> Optional[str]:
    unit = VM_GUEST_UNITS.get(variant)
    if unit:
        enable_service(runner, root, unit)
    return unit


def configure_ssh(runner: CommandRunner, root: str, *, enabled: bool) -> None:
    if enabled:
        pacman_install(runner, root, ["openssh"])
        enable_service(runner, root, "sshd")
    else:
        disable_service(runner, root, "sshd")


def create_user_dirs(runner: CommandRunner, root: str, username: str, extra: Sequence[str] = ()) -> None:
    home = f"home/{username}"
    for d in USER_DIRS:
        if not runner.dry_run:
            target_path(root, f"{home}/{d}").mkdir(parents=True, exist_ok=True)
    owned = [f"/{home}/{d}" for d in USER_DIRS] + [f"/{p}" for p in extra]
    chroot_cmd(runner, root, ["chown", "-R", f"{username}:{username}", *owned])


def _language_of(name: str) -> str:
    return name.split("@", 1)[0].split(".", 1)[0].split("_", 1)[0]


def strip_locales(root: str, language: str, *, dry_run: bool = False) -> List[str]:
    """Remove /usr/share/locale entries whose base language is not ``language``."""

    locale_dir = target_path(root, "usr/share/locale")
    removed: List[str] = []
    if not locale_dir.is_dir():
        return removed
    for entry in sorted(locale_dir.iterdir()):
        if not entry.is_dir() or _language_of(entry.name) == language:
            continue
        removed.append(entry.name)
        if not dry_run:
            shutil.rmtree(entry, ignore_errors=True)
    return removed


def strip_docs(root: str, *, dry_run: bool = False) -> None:
    for rel in DOC_DIRS:
        d = target_path(root, rel)
        if not d.is_dir() or dry_run:
            continue
        for entry in d.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry, ignore_errors=True)
            else:
                entry.unlink(missing_ok=True)


def reduce_footprint(runner: CommandRunner, root: str, *, language: str) -> List[str]:
    chroot_cmd(runner, root, ["pacman", "-Rns", "--noconfirm", *FOOTPRINT_PACKAGES], check=False)
    removed = strip_locales(root, language, dry_run=runner.dry_run)
    strip_docs(root, dry_run=runner.dry_run)
    return removed


def clean_package_cache(runner: CommandRunner, root: str) -> None:
    chroot_cmd(runner, root, ["pacman", "-Scc", "--noconfirm"])


def regenerate_machine_id(runner: CommandRunner, root: str) -> None:
    # The id copied from the live image must not be shared by every install.
    p = target_path(root, "etc/machine-id")
    if not runner.dry_run and p.exists():
        p.unlink()
    chroot_cmd(runner, root, ["systemd-machine-id-setup"])


def enable_trim(runner: CommandRunner, root: str) -> None:
    enable_service(runner, root, "fstrim.timer")
