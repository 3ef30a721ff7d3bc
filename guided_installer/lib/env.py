from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    # Staging mountpoint for the target root.
    target_root: str = "/mnt"

    # Live environment logs.
    action_log: str = "/tmp/guided-installer.log"
    session_log: str = "/tmp/guided-installer-session.log"
    provision_log: str = "/tmp/pacstrap.log"

    # Live environment package tool configuration.
    mirrorlist: str = "/etc/pacman.d/mirrorlist"
    pacman_conf: str = "/etc/pacman.conf"

    # Probes.
    efivars: str = "/sys/firmware/efi/efivars"
    meminfo: str = "/proc/meminfo"
    supported_locales: str = "/usr/share/i18n/SUPPORTED"
    zoneinfo: str = "/usr/share/zoneinfo"

    # Relative to target_root.
    target_action_log: str = "var/log/guided-installer.log"
    target_session_log: str = "var/log/guided-installer-session.log"
    target_summary: str = "var/log/guided-installer.yaml"
    target_live_log_copy: str = "tmp/guided-installer-live.log"


PATHS = Paths()
