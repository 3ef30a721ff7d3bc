from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..actions import ActionLog
from ..errors import CommandError
from .block import DeviceState, inspect_device
from .command import CommandRunner

logger = logging.getLogger(__name__)

COMPONENT = "reclaim"


@dataclass(frozen=True)
class ReclaimResult:
    disk: str
    before: DeviceState
    after: DeviceState
    skipped_tools: List[str] = field(default_factory=list)

    @property
    def still_busy(self) -> bool:
        return self.after.busy


def _best_effort(runner: CommandRunner, argv: Sequence[str], skipped: List[str]) -> Optional[int]:
    """Run one unwind command; never raises. Returns the exit status, None if skipped."""

    tool = argv[0]
    if not runner.has(tool):
        if tool not in skipped:
            skipped.append(tool)
        return None
    try:
        return runner.run(list(argv), check=False).returncode
    except (CommandError, OSError) as e:
        logger.debug("Ignoring %s failure: %s", tool, e)
        return None


def reclaim_device(
    runner: CommandRunner,
    disk: str,
    *,
    staging: str,
    actions: ActionLog,
) -> ReclaimResult:
    """Release ``disk`` from every prior holder so it can be repartitioned.

    Order matters: mounts before swap before crypt before LVM/RAID before
    leftover mapper nodes, and the kernel re-reads the table last. Each
    sub-step is best-effort; running this on a free disk is a no-op.
    """

    skipped: List[str] = []
    before = inspect_device(runner, disk)
    actions.record(
        COMPONENT,
        f"Reclaiming {disk} (partitions={len(before.partitions)} mounts={len(before.mounts)} "
        f"crypt={len(before.crypt)} mapper={len(before.mapper)})",
    )

    # (a) the installer's own staging mountpoint, recursively
    _best_effort(runner, ["umount", "-R", staging], skipped)

    # (b) anything else still mounted from this disk
    for mnt in inspect_device(runner, disk).mounts:
        if _best_effort(runner, ["umount", "-lf", mnt], skipped) == 0:
            actions.record(COMPONENT, f"Unmounted {mnt}")

    # (c) swap, system-wide
    _best_effort(runner, ["swapoff", "-a"], skipped)

    # (d) dm-crypt mappings backed by this disk
    for name in before.crypt:
        mapper = name.rsplit("/", 1)[-1]
        if _best_effort(runner, ["cryptsetup", "close", mapper], skipped) == 0:
            actions.record(COMPONENT, f"Closed crypt mapping {mapper}")

    # (e) volume groups and software RAID
    _best_effort(runner, ["vgchange", "-an"], skipped)
    _best_effort(runner, ["mdadm", "--stop", "--scan"], skipped)

    # (f) residual mapper nodes still layered over the disk
    residual = inspect_device(runner, disk)
    for name in (*residual.crypt, *residual.mapper):
        mapper = name.rsplit("/", 1)[-1]
        if _best_effort(runner, ["dmsetup", "remove", "--force", mapper], skipped) == 0:
            actions.record(COMPONENT, f"Removed mapper node {mapper}")

    # (g) settle and make the kernel forget the old table
    _best_effort(runner, ["udevadm", "settle"], skipped)
    _best_effort(runner, ["partprobe", disk], skipped)
    _best_effort(runner, ["blockdev", "--rereadpt", disk], skipped)

    after = inspect_device(runner, disk)
    if skipped:
        logger.info("Reclaim skipped missing tools: %s", ",".join(skipped))
    if after.busy:
        actions.warn(
            COMPONENT,
            f"{disk} still appears busy after reclaim (mounts={list(after.mounts)} "
            f"mapper={list(after.crypt + after.mapper)})",
        )
    else:
        actions.record(COMPONENT, f"{disk} is free")

    return ReclaimResult(disk=disk, before=before, after=after, skipped_tools=skipped)
