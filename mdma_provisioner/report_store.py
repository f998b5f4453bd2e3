from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

from .lib.serialize import read_mapping, write_mapping

logger = logging.getLogger(__name__)


def new_report(mode: str) -> Dict[str, Any]:
    return {
        "version": 1,
        "mode": mode,
        "plan": [],
        "events": [],
        "result": None,
        "errors": [],
    }


def load_report(path: str) -> Dict[str, Any]:
    if not Path(path).exists():
        return {}
    return read_mapping(path)


def save_report(path: str, report: Dict[str, Any]) -> None:
    write_mapping(path, report)
    logger.info("Run report written to %s", path)
