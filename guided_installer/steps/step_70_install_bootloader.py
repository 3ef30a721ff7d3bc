from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.bootloader import BootloaderResult, install_bootloader
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


class InstallBootloaderStep:
    step_id = "70_install_bootloader"

    def run(self, ctx: InstallContext, results: Dict[str, Any]) -> BootloaderResult:
        return install_bootloader(
            ctx.runner,
            ctx.target_root,
            uefi=ctx.plan.uefi,
            disk=ctx.plan.target_device,
            actions=ctx.actions,
        )
