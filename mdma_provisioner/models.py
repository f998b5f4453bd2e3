"""Stage output types.

Each stage's output wraps the previous one, so later stages can reach the
validated configuration and the partition layout without any global state.
All of them are frozen dataclasses: the engine compares the planned output of
a step with what its apply actually produced using plain equality.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from .config import ProvisionConfig, UnitType
from .hardware import HardwareSnapshot

MB = 1_000_000
GB = 1_000_000_000
TB = 1_000_000_000_000
MIB = 1024 * 1024


def fmt_size(size_bytes: int) -> str:
    if size_bytes >= TB:
        return f"{size_bytes / TB:.1f} TB"
    if size_bytes >= GB:
        return f"{size_bytes // GB} GB"
    if size_bytes >= MB:
        return f"{size_bytes // MB} MB"
    return f"{size_bytes} bytes"


@dataclass(frozen=True)
class VerifiedHardware:
    info: HardwareSnapshot

    def __str__(self) -> str:
        return f"Target hardware verified: {self.info.model}"


@dataclass(frozen=True)
class DriveInfo:
    device: str
    size_bytes: int
    model: str = "Unknown"

    def __str__(self) -> str:
        return f"{self.device} ({self.size_bytes // GB} GB, model: {self.model})"


@dataclass(frozen=True)
class ValidatedHardware:
    config: ProvisionConfig
    drives: Tuple[DriveInfo, ...]

    @property
    def primary(self) -> DriveInfo:
        return self.drives[0]

    @property
    def secondary(self) -> Optional[DriveInfo]:
        return self.drives[1] if len(self.drives) > 1 else None

    def __str__(self) -> str:
        noun = "drive" if len(self.drives) == 1 else "drives"
        listed = ", ".join(str(d) for d in self.drives)
        return f"Validated {self.config.unit_type} with {len(self.drives)} {noun}: {listed}"


@dataclass(frozen=True)
class Partition:
    device: str
    mount_point: str
    label: str
    size_bytes: int
    fstype: str = "ext4"

    def __str__(self) -> str:
        return f"{self.device} -> {self.mount_point} ({fmt_size(self.size_bytes)}, label: {self.label})"


@dataclass(frozen=True)
class DriveLayout:
    device: str
    partitions: Tuple[Partition, ...]

    @property
    def labels(self) -> list:
        return [p.label for p in self.partitions]


@dataclass(frozen=True)
class PartitionedDrives:
    validated: ValidatedHardware
    layouts: Tuple[DriveLayout, ...]

    @property
    def config(self) -> ProvisionConfig:
        return self.validated.config

    @property
    def partitions(self) -> Tuple[Partition, ...]:
        return tuple(p for layout in self.layouts for p in layout.partitions)

    def partition_for(self, mount_point: str) -> Optional[Partition]:
        for p in self.partitions:
            if p.mount_point == mount_point:
                return p
        return None

    def __str__(self) -> str:
        lines = ["Partitioned drives:"]
        for i, layout in enumerate(self.layouts):
            role = "Primary" if i == 0 else "Secondary"
            if len(self.layouts) == 1:
                role = "Single"
            lines.append(f"{role} drive: {layout.device}")
            lines.extend(f"  {p}" for p in layout.partitions)
        return "\n".join(lines)


@dataclass(frozen=True)
class FormattedSystem:
    partitioned: PartitionedDrives

    @property
    def config(self) -> ProvisionConfig:
        return self.partitioned.config

    def __str__(self) -> str:
        lines = ["Formatted filesystems:"]
        lines.extend(f"  {p.device} -> {p.fstype} (label: {p.label})" for p in self.partitioned.partitions)
        return "\n".join(lines)


@dataclass(frozen=True)
class InstalledSystem:
    formatted: FormattedSystem
    target_root: str
    payload: str

    @property
    def config(self) -> ProvisionConfig:
        return self.formatted.config

    @property
    def partitioned(self) -> PartitionedDrives:
        return self.formatted.partitioned

    def __str__(self) -> str:
        return f"Base system {self.payload} installed at {self.target_root}"


@dataclass(frozen=True)
class ConfiguredSystem:
    installed: InstalledSystem
    hostname: str
    services: Tuple[str, ...]
    files: Tuple[str, ...]

    @property
    def config(self) -> ProvisionConfig:
        return self.installed.config

    def __str__(self) -> str:
        services = ", ".join(self.services) or "none"
        return f"Configured {self.hostname} (services: {services}; files: {', '.join(self.files)})"


@dataclass(frozen=True)
class ProvisioningSummary:
    hostname: str
    unit_type: UnitType
    primary_drive: str
    secondary_drive: Optional[str]
    total_partitions: int

    def lines(self) -> list:
        out = [
            f"Hostname: {self.hostname}",
            f"Unit Type: {self.unit_type}",
            f"Primary Drive: {self.primary_drive}",
        ]
        if self.secondary_drive:
            out.append(f"Secondary Drive: {self.secondary_drive}")
        out.append(f"Total Partitions: {self.total_partitions}")
        return out


@dataclass(frozen=True)
class ProvisionedSystem:
    configured: ConfiguredSystem
    summary: ProvisioningSummary

    def __str__(self) -> str:
        s = self.summary
        return f"{s.hostname} ({s.unit_type}) fully provisioned on {s.primary_drive}"
