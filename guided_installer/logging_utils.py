from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .lib.env import PATHS

DEFAULT_LOG_PATH = PATHS.session_log


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.DEBUG,
    also_console: bool = True,
    console_level: int = logging.WARNING,
) -> str:
    """Configure the session log.

    The file handler receives every command line and its output (DEBUG), so
    the session log is the place to look after a failed run. The console only
    shows warnings unless ``console_level`` says otherwise, leaving the
    terminal to the questionnaire.

    If ``log_path`` cannot be opened the log falls back to a file in the
    current working directory. Returns the actual file path being used.
    """

    logger = logging.getLogger()
    logger.setLevel(level)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(logger, "_guided_installer_configured", False):
        return getattr(logger, "_guided_installer_log_path", log_path)

    chosen_path = log_path
    handlers: list[logging.Handler] = []

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    file_handler: Optional[logging.Handler] = None
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        chosen_path = log_path
    except OSError:
        fallback = str(Path.cwd() / "guided-installer-session.log")
        file_handler = logging.FileHandler(fallback)
        chosen_path = fallback
    file_handler.setFormatter(fmt)
    handlers.append(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        console.setLevel(console_level)
        handlers.append(console)

    for h in handlers:
        logger.addHandler(h)

    setattr(logger, "_guided_installer_configured", True)
    setattr(logger, "_guided_installer_log_path", chosen_path)

    logging.getLogger(__name__).info("Logging initialized (requested=%s, actual=%s)", log_path, chosen_path)
    return chosen_path
