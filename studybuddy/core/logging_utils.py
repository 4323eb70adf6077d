from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import pytz

from .config import PROJECT_ROOT

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DEFAULT_LOG_DIR = PROJECT_ROOT / "var" / "logs"


def configure_logging(
    verbose: bool = False,
    log_dir: Optional[Path] = DEFAULT_LOG_DIR,
    timezone: str = "UTC",
) -> Optional[Path]:
    """
    Log to stdout and to a daily file under var/logs.

    Returns the log file path, or None when file logging is disabled.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file: Optional[Path] = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        day = datetime.now(pytz.timezone(timezone)).strftime("%Y-%m-%d")
        log_file = log_dir / f"studybuddy_{day}.log"
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    # httpx logs every request line at INFO, including Canvas URLs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return log_file
