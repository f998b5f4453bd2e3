from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import yaml


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def read_mapping(path: str) -> Dict[str, Any]:
    """Read a JSON or YAML document (by suffix) that must be a mapping."""

    p = Path(path)
    text = p.read_text(encoding="utf-8")
    if _detect_format(p) == "json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text) or {}

    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain an object/dict, got {type(data).__name__}")
    return data


def write_mapping(path: str, data: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) == "json":
        p.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    else:
        p.write_text(yaml.safe_dump(data, sort_keys=False) + "\n", encoding="utf-8")
