from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple

from ..actions import ActionLog
from ..errors import CommandError, CommandTimeout
from .command import CommandRunner

logger = logging.getLogger(__name__)

COMPONENT = "mirrors"

REFLECTOR_TIMEOUT_S = 90

_KERNEL_ORG = "https://mirrors.edge.kernel.org/archlinux/$repo/os/$arch"
_GEO = "https://geo.mirror.pkgbuild.com/$repo/os/$arch"

FALLBACK_MIRROR = _GEO

FIXED_MIRRORS: Dict[str, Tuple[str, ...]] = {
    "stable": (_KERNEL_ORG, _GEO),
    "us": (_KERNEL_ORG, "https://mirror.rackspace.com/archlinux/$repo/os/$arch", _GEO),
    "eu": (
        _KERNEL_ORG,
        "https://ftp.halifax.rwth-aachen.de/archlinux/$repo/os/$arch",
        "https://mirror.netcologne.de/archlinux/$repo/os/$arch",
        _GEO,
    ),
    "asia": (
        _KERNEL_ORG,
        "https://ftp.jaist.ac.jp/pub/Linux/ArchLinux/$repo/os/$arch",
        "https://download.nus.edu.sg/mirror/archlinux/$repo/os/$arch",
        _GEO,
    ),
}

MIRROR_MODES = ("auto", "stable", "us", "eu", "asia", "safe")


@dataclass(frozen=True)
class MirrorResult:
    mode: str
    # reflector | default | fixed | safe
    source: str
    servers: List[str] = field(default_factory=list)


def write_mirrorlist(path: str, servers: Tuple[str, ...] | List[str], *, dry_run: bool = False) -> None:
    contents = "".join(f"Server = {s}\n" for s in servers)
    if dry_run:
        logger.info("Would write %s (%d servers)", path, len(servers))
        return
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    Path(path).write_text(contents, encoding="utf-8")


def set_pacman_option(conf_path: str, key: str, value: str | None, *, dry_run: bool = False) -> None:
    """Set (or uncomment) ``key`` in pacman.conf's [options] section.

    ``value`` None writes a bare flag such as ``DisableDownloadTimeout``.
    """

    line = key if value is None else f"{key} = {value}"
    p = Path(conf_path)
    if dry_run:
        logger.info("Would set %s in %s", line, conf_path)
        return
    text = p.read_text(encoding="utf-8") if p.exists() else "[options]\n"

    pattern = re.compile(rf"^#?[ \t]*{re.escape(key)}\b.*$", re.MULTILINE)
    if pattern.search(text):
        text = pattern.sub(line, text, count=1)
    elif re.search(r"^\[options\][ \t]*$", text, re.MULTILINE):
        text = re.sub(r"^\[options\][ \t]*$", f"[options]\n{line}", text, count=1, flags=re.MULTILINE)
    else:
        text = f"[options]\n{line}\n" + text
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")


def limit_downloads(conf_path: str, *, disable_timeout: bool, dry_run: bool = False) -> None:
    set_pacman_option(conf_path, "ParallelDownloads", "1", dry_run=dry_run)
    if disable_timeout:
        set_pacman_option(conf_path, "DisableDownloadTimeout", None, dry_run=dry_run)


def _rank_with_reflector(runner: CommandRunner, mirrorlist: str, actions: ActionLog) -> bool:
    r = runner.run(["pacman", "-Sy", "--noconfirm", "--needed", "reflector"], check=False)
    if r.returncode != 0 or not runner.has("reflector"):
        actions.record(COMPONENT, "reflector unavailable; keeping default mirror list")
        return False

    actions.record(COMPONENT, "Optimizing download mirrors (fastest HTTPS)")
    try:
        r = runner.run(
            ["reflector", "--protocol", "https", "--latest", "20", "--sort", "rate", "--save", mirrorlist],
            check=False,
            timeout=REFLECTOR_TIMEOUT_S,
        )
    except CommandTimeout:
        actions.warn(COMPONENT, f"reflector exceeded {REFLECTOR_TIMEOUT_S}s; keeping default mirror list")
        return False
    if r.returncode != 0:
        actions.warn(COMPONENT, f"reflector failed (code {r.returncode}); keeping default mirror list")
        return False
    return True


def resolve_mirrors(
    runner: CommandRunner,
    *,
    mode: str,
    safe_mode: bool,
    mirrorlist: str,
    pacman_conf: str,
    actions: ActionLog,
) -> MirrorResult:
    """Prepare the live package-source configuration before the bulk install.

    Never prompts and never raises: every tool call here is best-effort.
    """

    safe = safe_mode or mode == "safe"
    try:
        runner.run(["pacman", "-Sy", "--noconfirm", "--needed", "archlinux-keyring"], check=False)

        if mode in FIXED_MIRRORS:
            servers = FIXED_MIRRORS[mode]
            write_mirrorlist(mirrorlist, servers, dry_run=runner.dry_run)
            runner.run(["pacman", "-Syy", "--noconfirm"], check=False)
            actions.record(COMPONENT, f"Wrote {mode} mirror list ({len(servers)} servers)")
            return MirrorResult(mode=mode, source="fixed", servers=list(servers))

        if safe:
            limit_downloads(pacman_conf, disable_timeout=True, dry_run=runner.dry_run)
            actions.record(COMPONENT, "Safe mode: ParallelDownloads=1, download timeout disabled")
            return MirrorResult(mode=mode, source="safe")

        if _rank_with_reflector(runner, mirrorlist, actions):
            return MirrorResult(mode=mode, source="reflector")
    except (CommandError, OSError) as e:
        actions.warn(COMPONENT, f"Mirror preparation failed, continuing with defaults: {e}")

    return MirrorResult(mode=mode, source="default")
