from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace
from typing import List, Optional

from .actions import ActionLog
from .errors import InstallerError, PreconditionError, ProvisionError
from .lib.command import CommandRunner
from .lib.env import PATHS, Paths
from .lib.hwdetect import detect_hardware
from .lib.net import is_online
from .logging_utils import configure_logging
from .pipeline import InstallContext, PipelineResult, run_pipeline
from .plan_store import load_answers, plan_from_answers
from .questionnaire import ConsolePrompter, collect_plan
from .report import render_summary
from .steps import (
    ConfigureSystemStep,
    FinalizeStep,
    InstallBootloaderStep,
    PartitionFilesystemStep,
    ProvisionPackagesStep,
    ReclaimDiskStep,
    ResolveMirrorsStep,
    WriteFstabStep,
)

logger = logging.getLogger(__name__)

COMPONENT = "installer"


def build_steps():
    return [
        ReclaimDiskStep(),
        PartitionFilesystemStep(),
        ResolveMirrorsStep(),
        ProvisionPackagesStep(),
        WriteFstabStep(),
        ConfigureSystemStep(),
        InstallBootloaderStep(),
        FinalizeStep(),
    ]


def check_preconditions(probe: CommandRunner, *, dry_run: bool) -> None:
    if not dry_run and os.geteuid() != 0:
        raise PreconditionError("This installer must be run as root.")
    if not is_online(probe):
        raise PreconditionError("No network detected. Connect (e.g. with iwctl) and re-run the installer.")


def run(
    *,
    paths: Paths = PATHS,
    answers_path: Optional[str] = None,
    templates_dir: str = "",
    dry_run: bool = False,
    stop_after: Optional[str] = None,
) -> PipelineResult:
    """Probe, collect a confirmed plan, then run the install pipeline."""

    # Probes are read-only, so they run for real even in a dry run.
    probe = CommandRunner()
    runner = CommandRunner(dry_run=dry_run)

    actions = ActionLog(paths.action_log)
    actions.record(COMPONENT, "Guided installer started" + (" (dry run)" if dry_run else ""))

    check_preconditions(probe, dry_run=dry_run)
    hardware = detect_hardware(probe, paths)

    if answers_path:
        plan = plan_from_answers(load_answers(answers_path), hardware)
    else:
        plan = collect_plan(ConsolePrompter(), hardware, paths)
    actions.record(
        COMPONENT,
        f"Plan confirmed: device={plan.target_device} uefi={str(plan.uefi).lower()} wm={plan.window_manager} "
        f"memory_mb={plan.memory_mb} mirror={plan.mirror_mode} safe_mode={str(plan.safe_mode).lower()}",
    )

    ctx = InstallContext(
        plan=plan,
        hardware=hardware,
        runner=runner,
        actions=actions,
        paths=paths,
        templates_dir=templates_dir,
    )
    try:
        result = run_pipeline(ctx, build_steps(), stop_after=stop_after)
    except (InstallerError, OSError) as e:
        actions.warn(COMPONENT, f"Installation aborted: {e}")
        raise

    if result.stopped_after:
        print(f"Stopped after {result.stopped_after}.")
    else:
        print(render_summary(plan, log_path="/" + paths.target_action_log))
    return result


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="guided-installer", description="Guided Arch Linux installer")
    p.add_argument("--answers", default=None, help="Unattended answers file (yaml|json)")
    p.add_argument("--templates", default="", help="Directory holding theme templates")
    p.add_argument("--dry-run", action="store_true", help="Log commands without executing them")
    p.add_argument("--stop-after", default=None, help="Stop after step_id (e.g. 50_provision_packages)")
    p.add_argument("--log", default=PATHS.action_log, help="Path to the action log")
    p.add_argument("--session-log", default=PATHS.session_log, help="Path to the session log")
    p.add_argument("--verbose", "-v", action="store_true", help="Show progress on the console")

    args = p.parse_args(argv)

    session_log = configure_logging(
        log_path=args.session_log,
        console_level=logging.INFO if args.verbose else logging.WARNING,
    )
    paths = replace(PATHS, action_log=args.log, session_log=session_log)

    try:
        run(
            paths=paths,
            answers_path=args.answers,
            templates_dir=args.templates,
            dry_run=args.dry_run,
            stop_after=args.stop_after,
        )
    except ProvisionError as e:
        logger.error("Installer failed: %s", e)
        print(f"ERROR: {e}", file=sys.stderr)
        if e.tail:
            print(f"--- last {len(e.tail)} lines of {e.log_path} ---", file=sys.stderr)
            print("\n".join(e.tail), file=sys.stderr)
        print(
            "Likely causes: partial files on the target, time skew, low memory, disk I/O errors "
            f"or package/keyring issues. Log: {e.log_path}",
            file=sys.stderr,
        )
        return 1
    except InstallerError as e:
        logger.error("Installer failed: %s", e)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        # File writes into the target (hostname, sudoers, fstab, logs) fail this way.
        logger.error("Installer failed: %s", e)
        logger.debug("Traceback", exc_info=True)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by operator")
        print("\nAborted.", file=sys.stderr)
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
