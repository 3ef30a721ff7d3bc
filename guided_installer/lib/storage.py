from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..actions import ActionLog
from ..errors import CommandError
from .block import partitions_of
from .command import CommandRunner

logger = logging.getLogger(__name__)

COMPONENT = "partition"


@dataclass(frozen=True)
class PartitionPlan:
    disk: str
    uefi: bool
    esp_size_mib: int = 512
    # BIOS layout starts at 1MiB to keep the first partition aligned.
    bios_start: str = "1MiB"


@dataclass(frozen=True)
class PartitionResult:
    disk: str
    uefi: bool
    root_part: str
    esp_part: Optional[str]
    target_root: str

    @property
    def boot_mount(self) -> Optional[str]:
        return f"{self.target_root}/boot" if self.esp_part else None


def wipe_device(runner: CommandRunner, disk: str, *, actions: ActionLog) -> None:
    """Remove every filesystem signature and partition table from ``disk``.

    A first rejection usually means udev still holds the device; settle and
    force once more. A second failure is fatal.
    """

    r = runner.run(["wipefs", "-a", disk], check=False)
    if r.returncode != 0:
        actions.warn(COMPONENT, f"wipefs rejected {disk} (code {r.returncode}); settling and forcing")
        runner.run(["udevadm", "settle"], check=False)
        runner.run(["wipefs", "-f", "-a", disk])
    runner.run(["sgdisk", "-Z", disk], check=False)
    actions.record(COMPONENT, f"Wiped signatures on {disk}")


def _settled_partitions(runner: CommandRunner, disk: str, expected: int) -> List[str]:
    # Node names differ by device class (sda1 vs nvme0n1p1); always ask the kernel.
    parts = partitions_of(runner, disk)
    if len(parts) < expected:
        runner.run(["udevadm", "settle"], check=False)
        parts = partitions_of(runner, disk)
    if len(parts) < expected and not runner.dry_run:
        raise CommandError(["lsblk", disk], 1, f"expected {expected} partitions on {disk}, found {len(parts)}")
    return parts


def partition_and_format(
    *,
    plan: PartitionPlan,
    target_root: str,
    runner: CommandRunner,
    actions: ActionLog,
) -> PartitionResult:
    """Create the firmware-appropriate layout, format it and mount it.

    Layout:
    - UEFI: 512MiB ESP (FAT32) mounted at <target>/boot, ext4 root on the rest
    - BIOS: msdos label, one ext4 root partition from 1MiB to the end

    There is no recovery path once the wipe has happened; every failure here
    propagates as CommandError.
    """

    disk = plan.disk
    logger.info("Partitioning disk=%s uefi=%s", disk, plan.uefi)
    actions.record(COMPONENT, f"Starting partitioning of {disk} (UEFI={str(plan.uefi).lower()})")

    wipe_device(runner, disk, actions=actions)

    esp_part: Optional[str] = None
    if plan.uefi:
        runner.run(["sgdisk", "-n", f"1:0:+{plan.esp_size_mib}M", "-t", "1:ef00", "-c", "1:EFI System", disk])
        runner.run(["sgdisk", "-n", "2:0:0", "-t", "2:8300", "-c", "2:Linux Root", disk])
        runner.run(["partprobe", disk])
        parts = _settled_partitions(runner, disk, 2)
        esp_part, root_part = (parts[0], parts[1]) if len(parts) >= 2 else (f"{disk}1", f"{disk}2")

        runner.run(["mkfs.fat", "-F32", esp_part])
        runner.run(["mkfs.ext4", "-F", root_part])
        runner.run(["mkdir", "-p", target_root])
        runner.run(["mount", root_part, target_root])
        runner.run(["mkdir", "-p", f"{target_root}/boot"])
        runner.run(["mount", esp_part, f"{target_root}/boot"])
    else:
        runner.run(["parted", "-s", disk, "mklabel", "msdos"])
        runner.run(["parted", "-s", disk, "mkpart", "primary", "ext4", plan.bios_start, "100%"])
        runner.run(["partprobe", disk])
        parts = _settled_partitions(runner, disk, 1)
        root_part = parts[0] if parts else f"{disk}1"

        runner.run(["mkfs.ext4", "-F", root_part])
        runner.run(["mkdir", "-p", target_root])
        runner.run(["mount", root_part, target_root])

    actions.record(
        COMPONENT,
        f"Mounted root {root_part} at {target_root}" + (f", ESP {esp_part} at {target_root}/boot" if esp_part else ""),
    )
    return PartitionResult(disk=disk, uefi=plan.uefi, root_part=root_part, esp_part=esp_part, target_root=target_root)
