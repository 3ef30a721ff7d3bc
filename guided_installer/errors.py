from __future__ import annotations

from typing import List, Optional, Sequence


class InstallerError(RuntimeError):
    """A fatal condition. The run aborts and the CLI exits non-zero."""


class PreconditionError(InstallerError):
    """Raised before anything destructive happens (root, network, devices, answers)."""


class ConfirmationError(PreconditionError):
    """The retyped device path did not match the selected device."""


class CommandError(InstallerError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        msg = f"Command failed ({returncode}): {' '.join(self.argv)}"
        if stderr.strip():
            msg += f"\n{stderr.strip()}"
        super().__init__(msg)


class CommandTimeout(CommandError):
    def __init__(self, argv: Sequence[str], timeout_s: float) -> None:
        self.timeout_s = timeout_s
        super().__init__(argv, returncode=-9, stderr=f"killed after {timeout_s:g}s")


class ProvisionError(InstallerError):
    """Bulk package install failed on both the first attempt and the fallback retry."""

    def __init__(
        self,
        message: str,
        *,
        log_path: str,
        tail: Optional[List[str]] = None,
        attempts: Optional[list] = None,
    ) -> None:
        super().__init__(message)
        self.log_path = log_path
        self.tail = list(tail or [])
        self.attempts = list(attempts or [])
