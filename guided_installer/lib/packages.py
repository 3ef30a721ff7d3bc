from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .manifests import load_package_catalog

logger = logging.getLogger(__name__)

# Below this the desktop gets the lighter browser.
LIGHT_BROWSER_BELOW_MB = 1024
# Gaming extras need at least this much memory.
GAMING_MIN_MB = 2048


@dataclass(frozen=True)
class PackageSet:
    name: str
    packages: Tuple[str, ...]

    def __len__(self) -> int:
        return len(self.packages)


def _names(raw: Any) -> Tuple[str, ...]:
    if not raw:
        return ()
    if not isinstance(raw, list):
        raise ValueError(f"Package list must be a list, got {type(raw).__name__}")
    return tuple(str(p).strip() for p in raw if str(p).strip())


def build_package_sets(plan, catalog: Optional[Dict[str, Any]] = None) -> List[PackageSet]:
    """Assemble the ordered sets passed to pacstrap for ``plan``.

    Order is base, desktop, gaming, theme, vm. Overlap between sets is fine.
    """

    cat = catalog if catalog is not None else load_package_catalog()

    desktop = list(_names((cat.get("desktop") or {}).get(plan.window_manager)))
    browsers = cat.get("browser") or {}
    browser = browsers.get("light") if plan.memory_mb < LIGHT_BROWSER_BELOW_MB else browsers.get("full")
    if browser and plan.window_manager != "none":
        desktop.append(str(browser))

    gaming: Tuple[str, ...] = ()
    if plan.gaming and plan.memory_mb >= GAMING_MIN_MB:
        gaming = _names(cat.get("gaming"))
    elif plan.gaming:
        logger.info("Gaming requested but memory_mb=%s < %s; skipping gaming packages", plan.memory_mb, GAMING_MIN_MB)

    return [
        PackageSet("base", _names(cat.get("base"))),
        PackageSet("desktop", tuple(desktop)),
        PackageSet("gaming", gaming),
        PackageSet("theme", _names(cat.get("theme"))),
        PackageSet("vm", _names((cat.get("vm") or {}).get(plan.vm_variant))),
    ]


def flatten(sets: List[PackageSet]) -> List[str]:
    out: List[str] = []
    for s in sets:
        out.extend(s.packages)
    return out
