from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def target_path(root: str, rel: str) -> Path:
    return Path(root) / rel.lstrip("/")


def write_file(
    root: str,
    rel: str,
    contents: str,
    *,
    dry_run: bool = False,
    append: bool = False,
    mode: Optional[int] = None,
) -> Path:
    p = target_path(root, rel)
    if dry_run:
        logger.info("Would %s %s", "append to" if append else "write", str(p))
        return p
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "a" if append else "w", encoding="utf-8") as f:
        f.write(contents)
    if mode is not None:
        os.chmod(p, mode)
    return p


def read_file(root: str, rel: str) -> Optional[str]:
    p = target_path(root, rel)
    try:
        return p.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
