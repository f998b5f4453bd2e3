from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import pytest

from mdma_provisioner.config import DEFAULT_SERVICES, ProvisionConfig, UnitType, WifiConfig
from mdma_provisioner.hardware import HardwareSnapshot, StorageDevice
from mdma_provisioner.models import GB

from fakes import FakeSystem

PI_MODEL = "Raspberry Pi 5 Model B Rev 1.0"
SSH_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIA96k1y1Y1326DtI4csBGXSqu57wjNuBYEkyjUQ3uS7x mdma-pi-access"


def make_snapshot(sizes_gb: Sequence[int], model: str = PI_MODEL, extra: Sequence[StorageDevice] = ()) -> HardwareSnapshot:
    devices = tuple(
        StorageDevice(path=f"/dev/nvme{i}n1", size_bytes=gb * GB, model=f"Test NVMe {i}")
        for i, gb in enumerate(sizes_gb)
    )
    return HardwareSnapshot(model=model, devices=devices + tuple(extra), memory_mb=8192, serial="10000000abcdef")


def make_config(
    tmp_path: Path,
    unit: UnitType = UnitType.MDMA_909,
    *,
    ssh_key: Optional[str] = SSH_KEY,
    wifi: Optional[WifiConfig] = None,
) -> ProvisionConfig:
    payload = tmp_path / "mdma-base-2026.10.tar"
    if not payload.exists():
        payload.write_bytes(b"not really a tarball")
    return ProvisionConfig(
        hostname=unit.value,
        unit_type=unit,
        payload=str(payload),
        ssh_key=ssh_key,
        wifi=wifi,
        target_root=str(tmp_path / "target"),
    )


def make_fake(sizes_gb: Sequence[int]) -> FakeSystem:
    disks = {f"/dev/nvme{i}n1": gb * GB for i, gb in enumerate(sizes_gb)}
    return FakeSystem(disks, services=DEFAULT_SERVICES + ("wpa_supplicant",))


def pi_probe() -> str:
    return PI_MODEL


@pytest.fixture
def config(tmp_path):
    return make_config(tmp_path)
