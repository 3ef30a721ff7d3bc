from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .actions import ActionLog
from .errors import PreconditionError
from .lib.command import CommandRunner
from .lib.env import PATHS, Paths
from .lib.hwdetect import HardwareInfo
from .lib.templates import default_templates_dir
from .plan import InstallPlan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallContext:
    """Everything a step may touch, passed explicitly."""

    plan: InstallPlan
    hardware: HardwareInfo
    runner: CommandRunner
    actions: ActionLog
    paths: Paths = PATHS
    templates_dir: str = ""

    @property
    def target_root(self) -> str:
        return self.paths.target_root

    @property
    def dry_run(self) -> bool:
        return self.runner.dry_run

    def templates(self) -> str:
        return self.templates_dir or default_templates_dir()


class Step(Protocol):
    """A single stage of the install. Returns its result record."""

    step_id: str

    def run(self, ctx: InstallContext, results: Dict[str, Any]) -> Any:
        ...


@dataclass(frozen=True)
class PipelineResult:
    results: Dict[str, Any]
    ran_steps: List[str]
    stopped_after: Optional[str] = None


def run_pipeline(
    ctx: InstallContext,
    steps: Sequence[Step],
    *,
    stop_after: Optional[str] = None,
) -> PipelineResult:
    """Run steps strictly in order. The first exception aborts the run; there is no rollback."""

    if not ctx.plan.confirmed:
        raise PreconditionError("Install plan has not been confirmed; refusing to touch the target device.")

    known = [s.step_id for s in steps]
    if stop_after is not None and stop_after not in known:
        raise PreconditionError(f"Unknown step {stop_after!r}; expected one of: {', '.join(known)}")

    results: Dict[str, Any] = {}
    ran: List[str] = []

    for step in steps:
        logger.info("Running step %s", step.step_id)
        results[step.step_id] = step.run(ctx, results)
        ran.append(step.step_id)

        if stop_after is not None and step.step_id == stop_after:
            logger.info("Stopping after %s", stop_after)
            return PipelineResult(results=results, ran_steps=ran, stopped_after=stop_after)

    return PipelineResult(results=results, ran_steps=ran)
