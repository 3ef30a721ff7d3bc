from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from ..actions import ActionLog
from ..errors import ProvisionError
from .command import CmdResult, CommandRunner
from .mirrors import FALLBACK_MIRROR, limit_downloads, write_mirrorlist
from .packages import PackageSet, flatten
from .swap import TemporarySwap, free_kb, swap_size_for

logger = logging.getLogger(__name__)

COMPONENT = "provision"

MAX_ATTEMPTS = 2
TAIL_LINES = 50
LOW_SPACE_WARN_KB = 7_000_000

_LOW_PRIORITY = ["nice", "-n", "10", "ionice", "-c2", "-n7"]


@dataclass(frozen=True)
class ProvisionAttempt:
    number: int
    mirror: str
    returncode: int
    tail: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass(frozen=True)
class ProvisionResult:
    attempts: List[ProvisionAttempt]
    package_sets: List[PackageSet]
    swap_mb: int = 0
    free_kb: Optional[int] = None


def pacstrap_argv(target_root: str, packages: Sequence[str], *, low_priority: bool) -> List[str]:
    argv = ["pacstrap", "-K", target_root, *packages]
    return [*_LOW_PRIORITY, *argv] if low_priority else argv


def preflight(runner: CommandRunner, target_root: str, *, actions: ActionLog) -> Optional[int]:
    """Time sync, stale lock removal and a free-space reading of the target."""

    runner.run(["timedatectl", "set-ntp", "true"], check=False)
    runner.run(["rm", "-f", f"{target_root.rstrip('/')}/var/lib/pacman/db.lck"], check=False)

    avail = free_kb(runner, target_root)
    if avail is not None and avail < LOW_SPACE_WARN_KB:
        actions.warn(COMPONENT, f"Less than ~7GB free on target ({avail} KB); installation may fail or be cramped")
    return avail


def apply_fallback_mirror(runner: CommandRunner, *, mirrorlist: str, pacman_conf: str, actions: ActionLog) -> None:
    write_mirrorlist(mirrorlist, [FALLBACK_MIRROR], dry_run=runner.dry_run)
    limit_downloads(pacman_conf, disable_timeout=False, dry_run=runner.dry_run)
    runner.run(["pacman", "-Syy", "--noconfirm", "archlinux-keyring"], check=False)
    actions.record(COMPONENT, f"Switched to fallback mirror {FALLBACK_MIRROR} with ParallelDownloads=1")


def _save_output(path: str, r: CmdResult, *, dry_run: bool) -> None:
    if dry_run:
        return
    try:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        Path(path).write_text(r.stdout or "", encoding="utf-8")
    except OSError as e:
        logger.warning("Unable to write %s: %s", path, e)


def _attempt(
    runner: CommandRunner,
    number: int,
    mirror: str,
    argv: List[str],
    *,
    log_path: str,
) -> ProvisionAttempt:
    r = runner.run(argv, check=False, merge_output=True)
    _save_output(log_path, r, dry_run=runner.dry_run)
    return ProvisionAttempt(number=number, mirror=mirror, returncode=r.returncode, tail=r.tail(TAIL_LINES))


def provision(
    runner: CommandRunner,
    *,
    target_root: str,
    package_sets: List[PackageSet],
    mirror_mode: str,
    low_memory: bool,
    low_priority: bool,
    mirrorlist: str,
    pacman_conf: str,
    log_path: str,
    actions: ActionLog,
) -> ProvisionResult:
    """Install every package set onto ``target_root`` with one fallback retry.

    Attempt 2, if needed, always runs against the single fallback mirror with
    minimal download concurrency, regardless of ``mirror_mode``.
    """

    avail = preflight(runner, target_root, actions=actions)
    swap_mb = swap_size_for(avail) if low_memory else 0
    if low_memory and not swap_mb:
        actions.record(COMPONENT, f"Low memory but not enough free space for a temporary swapfile ({avail} KB)")

    packages = flatten(package_sets)
    argv = pacstrap_argv(target_root, packages, low_priority=low_priority)
    counts = " + ".join(f"{len(s)} {s.name}" for s in package_sets)
    actions.record(COMPONENT, f"Installing packages via pacstrap: {counts} (safe_mode={str(low_priority).lower()})")

    attempts: List[ProvisionAttempt] = []
    with TemporarySwap(runner, target_root, swap_mb, actions=actions):
        first = _attempt(runner, 1, f"operator:{mirror_mode}", argv, log_path=log_path)
        attempts.append(first)

        if not first.ok:
            actions.warn(
                COMPONENT,
                f"pacstrap failed (code {first.returncode}) with mirror mode {mirror_mode}. "
                "Applying fallback mirror and retrying once.",
            )
            apply_fallback_mirror(runner, mirrorlist=mirrorlist, pacman_conf=pacman_conf, actions=actions)
            attempts.append(_attempt(runner, 2, FALLBACK_MIRROR, argv, log_path=log_path))

    last = attempts[-1]
    if not last.ok:
        actions.warn(COMPONENT, f"pacstrap failed after retry (code {last.returncode}); log: {log_path}")
        raise ProvisionError(
            f"pacstrap failed after retry (code {last.returncode})",
            log_path=log_path,
            tail=last.tail,
            attempts=attempts,
        )

    actions.record(COMPONENT, f"pacstrap installation completed successfully (attempts={len(attempts)})")
    return ProvisionResult(attempts=attempts, package_sets=package_sets, swap_mb=swap_mb, free_kb=avail)
