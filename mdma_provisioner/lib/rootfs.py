from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .env import PATHS

logger = logging.getLogger(__name__)


def target_path(root: str, rel: str) -> Path:
    return Path(root) / rel.lstrip("/")


def read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except OSError:
        return None


def write_if_changed(root: str, rel: str, contents: str, *, mode: Optional[int] = None) -> bool:
    """Write a file below the target root; True when the file changed."""

    p = target_path(root, rel)
    if read_text(p) == contents:
        return False
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(contents, encoding="utf-8")
    if mode is not None:
        p.chmod(mode)
    logger.info("Wrote %s", str(p))
    return True


def link_target(path: Path) -> Optional[str]:
    if not path.is_symlink():
        return None
    return os.readlink(path)


def read_release(root: str) -> Optional[str]:
    txt = read_text(target_path(root, PATHS.release_marker))
    return txt.strip() if txt is not None else None


def write_release(root: str, payload_name: str) -> None:
    write_if_changed(root, PATHS.release_marker, payload_name + "\n")
