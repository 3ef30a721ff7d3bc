from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from ..lib.files import target_path
from ..pipeline import InstallContext
from ..plan_store import save_summary
from ..report import build_summary

logger = logging.getLogger(__name__)

COMPONENT = "finalize"


@dataclass(frozen=True)
class FinalizeResult:
    summary_path: str
    action_log: str
    session_log_copied: bool


class FinalizeStep:
    step_id = "90_finalize"

    def run(self, ctx: InstallContext, results: Dict[str, Any]) -> FinalizeResult:
        root = ctx.target_root
        paths = ctx.paths

        ctx.actions.record(COMPONENT, "Installation completed")

        summary_path = str(target_path(root, paths.target_summary))
        summary = build_summary(plan=ctx.plan, hardware=ctx.hardware, results=results, actions=ctx.actions)
        summary["completed_steps"] = [*results.keys(), self.step_id]
        save_summary(summary_path, summary, dry_run=ctx.dry_run)

        action_dest = str(target_path(root, paths.target_action_log))
        session_copied = False
        if ctx.dry_run:
            logger.info("Would copy logs into %s", str(target_path(root, "var/log")))
        else:
            ctx.actions.copy_to(action_dest)
            if Path(paths.session_log).exists():
                dest = target_path(root, paths.target_session_log)
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(paths.session_log, dest)
                session_copied = True

        return FinalizeResult(summary_path=summary_path, action_log=action_dest, session_log_copied=session_copied)
