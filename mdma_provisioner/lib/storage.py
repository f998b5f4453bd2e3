from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from ..config import UnitType
from ..errors import ValidationError
from ..models import GB, MIB, DriveInfo, DriveLayout, Partition, ValidatedHardware

logger = logging.getLogger(__name__)

# Sizes in decimal GB.
BOOT_SIZE_GB = 1
ROOT_SIZE_GB = 16
VAR_SIZE_GB = 8
METADATA_SIZE_GB = 12
MIN_MUSIC_SIZE_GB = 300
MIN_CDJ_SIZE_GB = 64

OS_OVERHEAD_GB = BOOT_SIZE_GB + ROOT_SIZE_GB + VAR_SIZE_GB + METADATA_SIZE_GB
MIN_SINGLE_DRIVE_GB = OS_OVERHEAD_GB + MIN_MUSIC_SIZE_GB + MIN_CDJ_SIZE_GB
MIN_CACHE_UNIT_GB = BOOT_SIZE_GB + ROOT_SIZE_GB + VAR_SIZE_GB

MOUNT_POINTS = {
    "boot": "/boot",
    "root": "/",
    "var": "/var",
    "music": "/music",
    "metadata": "/metadata",
    "cdj-export": "/cdj-export",
    "cache": "/cache",
}

# The Pi firmware reads its boot files from a FAT32 partition.
FILESYSTEMS = {"boot": "vfat"}

# sfdisk type aliases
_GPT_TYPES = {"vfat": "uefi", "ext4": "linux"}


def partition_device_path(disk: str, n: int) -> str:
    # nvme/mmcblk devices use p suffix
    if disk.endswith(tuple("0123456789")):
        return f"{disk}p{n}"
    return f"{disk}{n}"


def _layout(disk: str, parts: Sequence[Tuple[str, int]]) -> DriveLayout:
    return DriveLayout(
        device=disk,
        partitions=tuple(
            Partition(
                device=partition_device_path(disk, i),
                mount_point=MOUNT_POINTS[label],
                label=label,
                size_bytes=size,
                fstype=FILESYSTEMS.get(label, "ext4"),
            )
            for i, (label, size) in enumerate(parts, start=1)
        ),
    )


def _system(*rest: Tuple[str, int]) -> List[Tuple[str, int]]:
    return [("boot", BOOT_SIZE_GB * GB), ("root", ROOT_SIZE_GB * GB), ("var", VAR_SIZE_GB * GB), *rest]


def music_on_primary(primary: DriveInfo, secondary: DriveInfo) -> bool:
    """Primary must be at least 1.5x the secondary (raw sizes) to share it with music."""

    return 2 * (primary.size_bytes // GB) >= 3 * (secondary.size_bytes // GB)


def _single_drive(drive: DriveInfo) -> DriveLayout:
    remaining_gb = max(drive.size_bytes - OS_OVERHEAD_GB * GB, 0) // GB
    min_required = MIN_MUSIC_SIZE_GB + MIN_CDJ_SIZE_GB
    if remaining_gb < min_required:
        raise ValidationError(
            f"{drive.device} has only {remaining_gb}GB after OS partitions, need at least "
            f"{min_required}GB for music ({MIN_MUSIC_SIZE_GB}GB) + CDJ export ({MIN_CDJ_SIZE_GB}GB)"
        )

    extra = remaining_gb - min_required
    music_gb = MIN_MUSIC_SIZE_GB + extra * MIN_MUSIC_SIZE_GB // min_required
    cdj_gb = MIN_CDJ_SIZE_GB + extra * MIN_CDJ_SIZE_GB // min_required
    logger.info("Single-drive sizing on %s: music=%dGB cdj-export=%dGB", drive.device, music_gb, cdj_gb)

    return _layout(
        drive.device,
        _system(
            ("music", music_gb * GB),
            ("metadata", METADATA_SIZE_GB * GB),
            ("cdj-export", cdj_gb * GB),
        ),
    )


def _two_drives(primary: DriveInfo, secondary: DriveInfo) -> Tuple[DriveLayout, DriveLayout]:
    rest = max(primary.size_bytes - OS_OVERHEAD_GB * GB, 0)
    if music_on_primary(primary, secondary):
        shared, dedicated = "music", "cdj-export"
    else:
        shared, dedicated = "cdj-export", "music"
    logger.info("Two-drive layout: %s on %s, %s on %s", shared, primary.device, dedicated, secondary.device)

    first = _layout(primary.device, _system(("metadata", METADATA_SIZE_GB * GB), (shared, rest)))
    second = _layout(secondary.device, [(dedicated, secondary.size_bytes)])
    return first, second


def compute_layouts(validated: ValidatedHardware) -> Tuple[DriveLayout, ...]:
    """Partition layout for every validated drive, primary first.

    The primary drive always starts with the boot partition.
    """

    unit = validated.config.unit_type
    primary = validated.primary
    secondary = validated.secondary

    if unit == UnitType.MDMA_303:
        rest = max(primary.size_bytes - MIN_CACHE_UNIT_GB * GB, 0)
        return (_layout(primary.device, _system(("cache", rest))),)

    if secondary is not None:
        return _two_drives(primary, secondary)
    return (_single_drive(primary),)


def render_sfdisk_script(layout: DriveLayout) -> str:
    """sfdisk input for a complete GPT table.

    The last partition carries no size so it takes whatever is left on the disk.
    """

    lines: List[str] = ["label: gpt"]
    last = len(layout.partitions) - 1
    for i, p in enumerate(layout.partitions):
        fields = []
        if i != last:
            fields.append(f"size={p.size_bytes // MIB}MiB")
        fields.append(f"type={_GPT_TYPES[p.fstype]}")
        fields.append(f"name={p.label}")
        lines.append(", ".join(fields))
    return "\n".join(lines) + "\n"


def mkfs_argv(partition: Partition) -> List[str]:
    if partition.fstype == "vfat":
        return ["mkfs.vfat", "-F", "32", "-n", partition.label, partition.device]
    return ["mkfs.ext4", "-F", "-L", partition.label, partition.device]


def mount_argv(partition: Partition, where: str) -> List[str]:
    # FAT has no owners; quiet lets tar's chown calls succeed on /boot.
    if partition.fstype == "vfat":
        return ["mount", "-o", "quiet", partition.device, where]
    return ["mount", partition.device, where]
