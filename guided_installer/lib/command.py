from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Mapping, Sequence

from ..errors import CommandError, CommandTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def tail(self, lines: int = 50) -> List[str]:
        out = (self.stdout or "") + (self.stderr or "")
        return out.splitlines()[-lines:]


def _fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    timeout: float | None = None,
    merge_output: bool = False,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command with consistent logging.

    - Always logs the command (never ``input_text``, which may carry secrets).
    - A missing executable is reported as exit status 127 rather than raised.
    - ``timeout`` kills the child and raises CommandTimeout.
    - ``merge_output`` folds stderr into stdout, like ``2>&1``.
    - dry_run logs but does not execute.
    """

    argv_list = list(argv)
    logger.info("CMD %s", _fmt_argv(argv_list))

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

    try:
        p = subprocess.run(
            argv_list,
            input=input_text,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if merge_output else subprocess.PIPE,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.warning("Timed out after %ss: %s", timeout, _fmt_argv(argv_list))
        raise CommandTimeout(argv_list, timeout or 0)
    except FileNotFoundError:
        res = CmdResult(argv=argv_list, returncode=127, stdout="", stderr=f"{argv_list[0]}: command not found")
    else:
        res = CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout or "", stderr=p.stderr or "")

    if res.stdout:
        logger.debug("STDOUT %s", res.stdout.strip())
    if res.stderr:
        logger.debug("STDERR %s", res.stderr.strip())

    if check and res.returncode != 0:
        raise CommandError(argv_list, res.returncode, res.stderr or res.stdout)

    return res


class CommandRunner:
    """Narrow seam between component logic and the system tools it drives.

    Components only ever call ``run`` and ``has``; tests substitute a fake
    with canned results.
    """

    def __init__(self, *, dry_run: bool = False) -> None:
        self.dry_run = dry_run

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        input_text: str | None = None,
        timeout: float | None = None,
        merge_output: bool = False,
    ) -> CmdResult:
        return run_cmd(
            argv,
            check=check,
            input_text=input_text,
            timeout=timeout,
            merge_output=merge_output,
            dry_run=self.dry_run,
        )

    def has(self, tool: str) -> bool:
        return shutil.which(tool) is not None
