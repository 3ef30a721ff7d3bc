from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import PreconditionError
from .block import BlockDevice, list_disks
from .command import CommandRunner
from .env import PATHS, Paths
from .firmware import detect_uefi

logger = logging.getLogger(__name__)

LOW_MEMORY_MB = 2048

# systemd-detect-virt output -> VM guest tool variant.
_VIRT_TO_VARIANT = {
    "kvm": "qemu",
    "qemu": "qemu",
    "oracle": "vbox",
    "vmware": "vmware",
}


@dataclass(frozen=True)
class HardwareInfo:
    uefi: bool
    memory_mb: int
    devices: List[BlockDevice] = field(default_factory=list)
    virtualization: str = "none"

    @property
    def low_memory(self) -> bool:
        return self.memory_mb < LOW_MEMORY_MB

    @property
    def suggested_vm_variant(self) -> str:
        return _VIRT_TO_VARIANT.get(self.virtualization, "none")

    def find_device(self, path: str) -> Optional[BlockDevice]:
        return next((d for d in self.devices if d.path == path), None)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "uefi": self.uefi,
            "memory_mb": self.memory_mb,
            "virtualization": self.virtualization,
            "devices": [
                {"path": d.path, "size": d.size_label, "model": d.model, "rotational": d.rotational}
                for d in self.devices
            ],
        }


def read_memory_mb(meminfo: str = PATHS.meminfo) -> int:
    try:
        for line in Path(meminfo).read_text(encoding="utf-8").splitlines():
            if line.startswith("MemTotal:"):
                return int(line.split()[1]) // 1024
    except (OSError, ValueError, IndexError):
        logger.warning("Unable to read %s", meminfo)
    return 0


def detect_virtualization(runner: CommandRunner) -> str:
    """Best-effort virtualization backend name ("none" on bare metal)."""

    if not runner.has("systemd-detect-virt"):
        return "none"
    r = runner.run(["systemd-detect-virt"], check=False)
    virt = (r.stdout or "").strip().lower()
    return virt or "none"


def detect_hardware(runner: CommandRunner, paths: Paths = PATHS) -> HardwareInfo:
    """Probe firmware mode, memory and candidate disks. No side effects.

    Raises PreconditionError when there is no disk to install to.
    """

    hw = HardwareInfo(
        uefi=detect_uefi(paths.efivars),
        memory_mb=read_memory_mb(paths.meminfo),
        devices=list_disks(runner),
        virtualization=detect_virtualization(runner),
    )

    logger.info(
        "Hardware: uefi=%s memory_mb=%s virt=%s devices=%s",
        hw.uefi,
        hw.memory_mb,
        hw.virtualization,
        ",".join(d.path for d in hw.devices) or "-",
    )

    if not hw.devices:
        raise PreconditionError("No disks found.")
    return hw
