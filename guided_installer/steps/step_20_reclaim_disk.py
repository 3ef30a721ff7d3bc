from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.reclaim import ReclaimResult, reclaim_device
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


class ReclaimDiskStep:
    step_id = "20_reclaim_disk"

    def run(self, ctx: InstallContext, results: Dict[str, Any]) -> ReclaimResult:
        return reclaim_device(
            ctx.runner,
            ctx.plan.target_device,
            staging=ctx.target_root,
            actions=ctx.actions,
        )
