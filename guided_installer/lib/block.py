from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .command import CommandRunner

logger = logging.getLogger(__name__)

# lsblk TYPE values that are device-mapper nodes layered over a partition.
_DM_TYPES = {"crypt", "lvm", "dm", "raid0", "raid1", "raid4", "raid5", "raid6", "raid10", "linear", "multipath"}


@dataclass(frozen=True)
class BlockDevice:
    path: str
    size_bytes: int
    model: str = ""
    rotational: bool = True
    removable: bool = False

    @property
    def size_label(self) -> str:
        size = float(self.size_bytes)
        for unit in ("B", "KiB", "MiB", "GiB", "TiB"):
            if size < 1024 or unit == "TiB":
                return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
            size /= 1024
        return f"{self.size_bytes}B"


@dataclass(frozen=True)
class BlockNode:
    name: str
    type: str
    mountpoint: Optional[str] = None
    children: Tuple["BlockNode", ...] = field(default_factory=tuple)

    def walk(self) -> Iterator["BlockNode"]:
        for c in self.children:
            yield c
            yield from c.walk()


@dataclass(frozen=True)
class DeviceState:
    """Live state of a disk: what still holds it open."""

    disk: str
    partitions: Tuple[str, ...] = ()
    mounts: Tuple[str, ...] = ()
    crypt: Tuple[str, ...] = ()
    mapper: Tuple[str, ...] = ()

    @property
    def busy(self) -> bool:
        return bool(self.mounts or self.crypt or self.mapper)

    @property
    def has_partitions(self) -> bool:
        return bool(self.partitions)


def _flag(v: Any) -> bool:
    # lsblk emits booleans on util-linux >= 2.37 and "0"/"1" strings before that.
    if isinstance(v, bool):
        return v
    return str(v).strip() in {"1", "true"}


def _node(raw: Dict[str, Any]) -> BlockNode:
    mps = [raw.get("mountpoint"), *(raw.get("mountpoints") or [])]
    # Active swap shows up as "[SWAP]"; it is released by swapoff, not umount.
    real = [m for m in mps if m and not str(m).startswith("[")]
    return BlockNode(
        name=str(raw.get("name") or ""),
        type=str(raw.get("type") or ""),
        mountpoint=real[0] if real else None,
        children=tuple(_node(c) for c in (raw.get("children") or [])),
    )


def _lsblk_json(runner: CommandRunner, argv: List[str]) -> List[Dict[str, Any]]:
    r = runner.run(argv, check=False)
    if r.returncode != 0 or not r.stdout.strip():
        return []
    try:
        data = json.loads(r.stdout)
    except ValueError:
        logger.warning("Unparseable lsblk output for %s", " ".join(argv))
        return []
    return list(data.get("blockdevices") or [])


def list_disks(runner: CommandRunner) -> List[BlockDevice]:
    """Return non-removable whole disks, skipping zram and loop nodes."""

    disks: List[BlockDevice] = []
    for raw in _lsblk_json(runner, ["lsblk", "-J", "-b", "-d", "-p", "-o", "NAME,SIZE,MODEL,TYPE,RM,ROTA"]):
        name = str(raw.get("name") or "")
        if raw.get("type") != "disk" or not name:
            continue
        if name.startswith(("/dev/zram", "/dev/loop")):
            continue
        if _flag(raw.get("rm")):
            continue
        try:
            size = int(raw.get("size") or 0)
        except (TypeError, ValueError):
            size = 0
        disks.append(
            BlockDevice(
                path=name,
                size_bytes=size,
                model=str(raw.get("model") or "").strip(),
                rotational=_flag(raw.get("rota")),
                removable=False,
            )
        )
    return disks


def device_tree(runner: CommandRunner, disk: str) -> Optional[BlockNode]:
    devs = _lsblk_json(runner, ["lsblk", "-J", "-p", "-o", "NAME,TYPE,MOUNTPOINT", disk])
    if not devs:
        return None
    return _node(devs[0])


def inspect_device(runner: CommandRunner, disk: str) -> DeviceState:
    """Re-derive partitions and holders of ``disk`` from live system state."""

    root = device_tree(runner, disk)
    if root is None:
        return DeviceState(disk=disk)

    partitions: List[str] = []
    mounts: List[str] = []
    crypt: List[str] = []
    mapper: List[str] = []

    if root.mountpoint:
        mounts.append(root.mountpoint)
    for n in root.walk():
        if n.type == "part":
            partitions.append(n.name)
        if n.type == "crypt":
            crypt.append(n.name)
        elif n.type in _DM_TYPES:
            mapper.append(n.name)
        if n.mountpoint:
            mounts.append(n.mountpoint)

    return DeviceState(
        disk=disk,
        partitions=tuple(partitions),
        mounts=tuple(mounts),
        crypt=tuple(crypt),
        mapper=tuple(mapper),
    )


def partitions_of(runner: CommandRunner, disk: str) -> List[str]:
    return list(inspect_device(runner, disk).partitions)
