from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.packages import build_package_sets
from ..lib.provision import ProvisionResult, provision
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


class ProvisionPackagesStep:
    step_id = "50_provision_packages"

    def run(self, ctx: InstallContext, results: Dict[str, Any]) -> ProvisionResult:
        plan = ctx.plan
        sets = build_package_sets(plan)
        return provision(
            ctx.runner,
            target_root=ctx.target_root,
            package_sets=sets,
            mirror_mode=plan.mirror_mode,
            low_memory=plan.low_memory,
            low_priority=plan.safe_mode,
            mirrorlist=ctx.paths.mirrorlist,
            pacman_conf=ctx.paths.pacman_conf,
            log_path=ctx.paths.provision_log,
            actions=ctx.actions,
        )
