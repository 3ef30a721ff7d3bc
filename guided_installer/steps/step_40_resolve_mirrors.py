from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.mirrors import MirrorResult, resolve_mirrors
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


class ResolveMirrorsStep:
    step_id = "40_resolve_mirrors"

    def run(self, ctx: InstallContext, results: Dict[str, Any]) -> MirrorResult:
        res = resolve_mirrors(
            ctx.runner,
            mode=ctx.plan.mirror_mode,
            safe_mode=ctx.plan.safe_mode,
            mirrorlist=ctx.paths.mirrorlist,
            pacman_conf=ctx.paths.pacman_conf,
            actions=ctx.actions,
        )
        logger.info("Mirrors resolved (mode=%s source=%s)", res.mode, res.source)
        return res
