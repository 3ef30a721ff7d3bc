from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

from ..lib.files import target_path, write_file
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)

COMPONENT = "fstab"


@dataclass(frozen=True)
class FstabResult:
    path: str
    entries: int
    live_log_copy: bool


class WriteFstabStep:
    step_id = "55_write_fstab"

    def run(self, ctx: InstallContext, results: Dict[str, Any]) -> FstabResult:
        root = ctx.target_root

        # Fatal on failure: the bootloader needs a consistent table.
        r = ctx.runner.run(["genfstab", "-U", root])
        table = r.stdout or ""
        if table and not table.endswith("\n"):
            table += "\n"
        path = write_file(root, "etc/fstab", table, append=True, dry_run=ctx.dry_run)

        entries = sum(1 for ln in table.splitlines() if ln.strip() and not ln.lstrip().startswith("#"))
        ctx.actions.record(COMPONENT, f"Generated fstab ({entries} entries)")

        copied = False
        if not ctx.dry_run:
            try:
                copied = ctx.actions.copy_to(str(target_path(root, ctx.paths.target_live_log_copy)))
            except OSError as e:
                logger.warning("Unable to copy live log into target: %s", e)

        return FstabResult(path=str(path), entries=entries, live_log_copy=copied)
