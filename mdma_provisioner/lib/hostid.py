from __future__ import annotations

from pathlib import Path
from typing import Optional

from .env import PATHS


def read_host_model(path: str = PATHS.device_tree_model) -> Optional[str]:
    """Read the board model from the device tree (best-effort).

    Device-tree strings are NUL terminated; None when unreadable.
    """

    try:
        txt = Path(path).read_text(encoding="utf-8", errors="ignore")
    except OSError:
        return None
    txt = txt.strip().rstrip("\x00").strip()
    return txt or None
