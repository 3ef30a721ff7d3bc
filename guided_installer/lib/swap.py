from __future__ import annotations

import logging
from typing import Optional

from ..actions import ActionLog
from .command import CommandRunner

logger = logging.getLogger(__name__)

COMPONENT = "swap"

# (minimum free KB on target, swap size in MB), largest first.
SWAP_TIERS = ((1_500_000, 1024), (800_000, 512))


def swap_size_for(free_kb: Optional[int]) -> int:
    if free_kb is None:
        return 0
    for min_free, size_mb in SWAP_TIERS:
        if free_kb >= min_free:
            return size_mb
    return 0


def free_kb(runner: CommandRunner, path: str) -> Optional[int]:
    """Available KB on the filesystem holding ``path`` (``df -Pk``), None if unknown."""

    r = runner.run(["df", "-Pk", path], check=False)
    lines = (r.stdout or "").strip().splitlines()
    if r.returncode != 0 or len(lines) < 2:
        return None
    try:
        return int(lines[1].split()[3])
    except (IndexError, ValueError):
        return None


class TemporarySwap:
    """Swap file on the *target* disk for the duration of the bulk install.

    Used as a context manager; the file is swapped off and deleted on exit
    whether or not the install succeeded.
    """

    def __init__(self, runner: CommandRunner, target_root: str, size_mb: int, *, actions: ActionLog) -> None:
        self.runner = runner
        self.path = f"{target_root.rstrip('/')}/swapfile"
        self.size_mb = size_mb
        self.actions = actions
        self.active = False
        self.created = False

    def __enter__(self) -> "TemporarySwap":
        if self.size_mb <= 0:
            return self
        self.actions.record(COMPONENT, f"Creating temporary swapfile on target ({self.size_mb}M) for stability")
        r = self.runner.run(["fallocate", "-l", f"{self.size_mb}M", self.path], check=False)
        if r.returncode != 0:
            self.runner.run(
                ["dd", "if=/dev/zero", f"of={self.path}", "bs=1M", f"count={self.size_mb}", "status=none"],
                check=False,
            )
        self.created = True
        self.runner.run(["chmod", "600", self.path], check=False)
        self.runner.run(["mkswap", self.path], check=False)
        self.active = self.runner.run(["swapon", self.path], check=False).returncode == 0
        if not self.active:
            self.actions.warn(COMPONENT, "Temporary swapfile could not be activated; continuing without it")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.created:
            return None
        self.runner.run(["swapoff", self.path], check=False)
        self.runner.run(["rm", "-f", self.path], check=False)
        self.actions.record(COMPONENT, "Removed temporary swapfile")
        self.active = False
        return None
