"""Hardware snapshot handed to the pipeline by the detection collaborator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .errors import ConfigError
from .lib.serialize import read_mapping


@dataclass(frozen=True)
class StorageDevice:
    path: str
    size_bytes: int
    removable: bool = False
    model: str = "Unknown"


@dataclass(frozen=True)
class HardwareSnapshot:
    model: str
    devices: Tuple[StorageDevice, ...] = ()
    memory_mb: Optional[int] = None
    serial: Optional[str] = None

    @classmethod
    def from_mapping(cls, raw: Dict[str, Any]) -> "HardwareSnapshot":
        model = raw.get("model")
        if not model or not isinstance(model, str):
            raise ConfigError("hardware snapshot requires a 'model' string")

        devices = []
        for d in raw.get("devices") or []:
            if not isinstance(d, dict) or not d.get("path"):
                raise ConfigError(f"invalid storage device entry: {d!r}")
            try:
                size = int(d.get("size_bytes") or 0)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"invalid size for {d.get('path')}: {d.get('size_bytes')!r}") from e
            devices.append(
                StorageDevice(
                    path=str(d["path"]),
                    size_bytes=size,
                    removable=bool(d.get("removable", False)),
                    model=str(d.get("model") or "Unknown"),
                )
            )

        memory = raw.get("memory_mb")
        return cls(
            model=model,
            devices=tuple(devices),
            memory_mb=int(memory) if memory is not None else None,
            serial=str(raw["serial"]) if raw.get("serial") else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "memory_mb": self.memory_mb,
            "serial": self.serial,
            "devices": [
                {"path": d.path, "size_bytes": d.size_bytes, "removable": d.removable, "model": d.model}
                for d in self.devices
            ],
        }


def load_hardware_snapshot(path: str) -> HardwareSnapshot:
    try:
        raw = read_mapping(path)
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read hardware snapshot {path}: {e}") from e
    return HardwareSnapshot.from_mapping(raw)
