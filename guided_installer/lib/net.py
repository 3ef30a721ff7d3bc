from __future__ import annotations

import logging

from .command import CommandRunner

logger = logging.getLogger(__name__)

PROBE_HOST = "archlinux.org"


def is_online(runner: CommandRunner, host: str = PROBE_HOST) -> bool:
    """Best-effort online check."""

    r = runner.run(["ping", "-c", "1", "-W", "2", host], check=False)
    if r.returncode != 0:
        logger.info("No reply from %s", host)
    return r.returncode == 0
