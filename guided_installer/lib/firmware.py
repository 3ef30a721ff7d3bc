from __future__ import annotations

from pathlib import Path

from .env import PATHS


def detect_uefi(efivars: str = PATHS.efivars) -> bool:
    """Detect firmware mode for the *currently running* environment.

    UEFI when the firmware-variables interface is exposed, legacy BIOS otherwise.
    """

    return Path(efivars).is_dir()
