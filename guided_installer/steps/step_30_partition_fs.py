from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.storage import PartitionPlan, PartitionResult, partition_and_format
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


class PartitionFilesystemStep:
    step_id = "30_partition_fs"

    def run(self, ctx: InstallContext, results: Dict[str, Any]) -> PartitionResult:
        plan = PartitionPlan(disk=ctx.plan.target_device, uefi=ctx.plan.uefi)
        res = partition_and_format(
            plan=plan,
            target_root=ctx.target_root,
            runner=ctx.runner,
            actions=ctx.actions,
        )
        logger.info("Partitioned (root=%s esp=%s)", res.root_part, res.esp_part)
        return res
