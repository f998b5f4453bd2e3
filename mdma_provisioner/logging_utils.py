from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

from .lib.env import PATHS

DEFAULT_LOG_PATH = PATHS.log_default
FALLBACK_LOG_NAME = "mdma-provisioner.log"

_FORMAT = logging.Formatter(
    fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S%z",
)

# Handlers installed by configure_logging(), replaced on the next call.
_installed: List[logging.Handler] = []


def _open_log_file(log_path: str) -> logging.FileHandler:
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path)
    except OSError:
        # /var/log is read-only on a unit booted from the installer image.
        return logging.FileHandler(str(Path.cwd() / FALLBACK_LOG_NAME))


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Send provisioning logs to a file and, optionally, the console.

    The file receives everything down to DEBUG, which is where external
    command output is logged. The console only shows ``level`` and above.
    Returns the path actually written to.
    """

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in _installed:
        root.removeHandler(h)
        h.close()
    _installed.clear()

    file_handler = _open_log_file(log_path)
    file_handler.setLevel(logging.DEBUG)
    _installed.append(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setLevel(level)
        _installed.append(console)

    for h in _installed:
        h.setFormatter(_FORMAT)
        root.addHandler(h)

    chosen_path = file_handler.baseFilename
    logging.getLogger(__name__).info("Logging initialized (requested=%s, actual=%s)", log_path, chosen_path)
    return chosen_path
