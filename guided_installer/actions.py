from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionRecord:
    timestamp: str
    component: str
    level: str
    message: str

    def line(self) -> str:
        tag = "" if self.level == "info" else f" {self.level.upper()}"
        return f"{self.timestamp} [{self.component}]{tag} {self.message}"


class ActionLog:
    """Append-only, process-wide record of what the installer did.

    Every record goes to the in-memory list, to the live log file and to the
    session logger. Records are never rewritten or reordered.
    """

    def __init__(self, path: Optional[str]) -> None:
        self.path = path
        self._records: List[ActionRecord] = []
        if path:
            try:
                Path(path).parent.mkdir(parents=True, exist_ok=True)
                Path(path).touch(exist_ok=True)
            except OSError:
                logger.warning("Action log %s is not writable; keeping records in memory only", path)
                self.path = None

    @property
    def records(self) -> Tuple[ActionRecord, ...]:
        return tuple(self._records)

    def record(self, component: str, message: str, *, level: str = "info") -> ActionRecord:
        rec = ActionRecord(
            timestamp=datetime.now().astimezone().isoformat(timespec="seconds"),
            component=component,
            level=level,
            message=message,
        )
        self._records.append(rec)
        logging.getLogger(f"guided_installer.actions.{component}").log(
            logging.WARNING if level == "warning" else logging.INFO, message
        )
        if self.path:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(rec.line() + "\n")
        return rec

    def warn(self, component: str, message: str) -> ActionRecord:
        return self.record(component, message, level="warning")

    def warnings(self) -> List[ActionRecord]:
        return [r for r in self._records if r.level == "warning"]

    def copy_to(self, dest: str) -> bool:
        """Copy the live log verbatim to ``dest``; False when there is nothing to copy."""

        if not self.path or not Path(self.path).exists():
            return False
        Path(dest).parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.path, dest)
        return True
