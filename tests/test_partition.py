from __future__ import annotations

import pytest

from conftest import make_config, make_fake, make_snapshot
from mdma_provisioner.config import UnitType
from mdma_provisioner.errors import CommandError, PlanningError, ValidationError
from mdma_provisioner.lib.storage import compute_layouts, mkfs_argv, partition_device_path, render_sfdisk_script
from mdma_provisioner.models import GB, DriveInfo, ValidatedHardware, VerifiedHardware
from mdma_provisioner.steps import PartitionStage, ValidateStage


async def validated(tmp_path, sizes, unit=UnitType.MDMA_909) -> ValidatedHardware:
    stage = ValidateStage(make_config(tmp_path, unit))
    return (await stage.plan(VerifiedHardware(make_snapshot(sizes)))).predicted


def sizes_of(layout):
    return [(p.mount_point, p.size_bytes // GB) for p in layout.partitions]


def test_partition_device_path():
    assert partition_device_path("/dev/nvme0n1", 1) == "/dev/nvme0n1p1"
    assert partition_device_path("/dev/mmcblk0", 3) == "/dev/mmcblk0p3"
    assert partition_device_path("/dev/sda", 2) == "/dev/sda2"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "size_gb, music, cdj",
    [(401, 300, 64), (476, 361, 77), (512, 391, 83), (1024, 813, 173)],
)
async def test_single_drive_splits_music_and_cdj_export(tmp_path, size_gb, music, cdj):
    (layout,) = compute_layouts(await validated(tmp_path, [size_gb]))

    assert sizes_of(layout) == [("/boot", 1), ("/", 16), ("/var", 8), ("/music", music), ("/metadata", 12), ("/cdj-export", cdj)]
    assert [p.device for p in layout.partitions] == [f"/dev/nvme0n1p{i}" for i in range(1, 7)]
    assert [p.fstype for p in layout.partitions] == ["vfat"] + ["ext4"] * 5


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "primary_gb, primary, secondary",
    [
        (512, [("/boot", 1), ("/", 16), ("/var", 8), ("/metadata", 12), ("/cdj-export", 475)], [("/music", 512)]),
        (640, [("/boot", 1), ("/", 16), ("/var", 8), ("/metadata", 12), ("/cdj-export", 603)], [("/music", 512)]),
        (730, [("/boot", 1), ("/", 16), ("/var", 8), ("/metadata", 12), ("/cdj-export", 693)], [("/music", 512)]),
        (768, [("/boot", 1), ("/", 16), ("/var", 8), ("/metadata", 12), ("/music", 731)], [("/cdj-export", 512)]),
        (800, [("/boot", 1), ("/", 16), ("/var", 8), ("/metadata", 12), ("/music", 763)], [("/cdj-export", 512)]),
        (1024, [("/boot", 1), ("/", 16), ("/var", 8), ("/metadata", 12), ("/music", 987)], [("/cdj-export", 512)]),
        (2048, [("/boot", 1), ("/", 16), ("/var", 8), ("/metadata", 12), ("/music", 2011)], [("/cdj-export", 512)]),
    ],
)
async def test_two_drives_place_music_by_relative_size(tmp_path, primary_gb, primary, secondary):
    first, second = compute_layouts(await validated(tmp_path, [primary_gb, 512]))

    assert sizes_of(first) == primary
    assert sizes_of(second) == secondary
    assert second.partitions[0].device == "/dev/nvme1n1p1"


@pytest.mark.asyncio
async def test_303_gets_cache_partition(tmp_path):
    (layout,) = compute_layouts(await validated(tmp_path, [512], UnitType.MDMA_303))
    assert sizes_of(layout) == [("/boot", 1), ("/", 16), ("/var", 8), ("/cache", 487)]
    assert render_sfdisk_script(layout) == (
        "label: gpt\n"
        "size=953MiB, type=uefi, name=boot\n"
        "size=15258MiB, type=linux, name=root\n"
        "size=7629MiB, type=linux, name=var\n"
        "type=linux, name=cache\n"
    )


@pytest.mark.asyncio
async def test_boot_partition_is_fat32(tmp_path):
    (layout,) = compute_layouts(await validated(tmp_path, [476]))
    boot, root = layout.partitions[:2]
    assert (boot.label, boot.fstype) == ("boot", "vfat")
    assert mkfs_argv(boot) == ["mkfs.vfat", "-F", "32", "-n", "boot", "/dev/nvme0n1p1"]
    assert mkfs_argv(root) == ["mkfs.ext4", "-F", "-L", "root", "/dev/nvme0n1p2"]


@pytest.mark.asyncio
async def test_single_drive_too_small_for_layout(tmp_path):
    v = await validated(tmp_path, [512])
    small = ValidatedHardware(config=v.config, drives=(DriveInfo("/dev/nvme0n1", 300 * GB),))
    with pytest.raises(ValidationError, match="after OS partitions"):
        compute_layouts(small)


@pytest.mark.asyncio
async def test_plan_on_blank_drive_has_pending_table(tmp_path):
    fake = make_fake([512])
    v = await validated(tmp_path, [512])

    step = await PartitionStage(fake).plan(v)

    assert step.pending == ("write GPT table on /dev/nvme0n1: boot, root, var, music, metadata, cdj-export",)
    assert step.predicted.layouts == compute_layouts(v)
    assert fake.mutating_calls() == []


@pytest.mark.asyncio
async def test_apply_writes_table_then_is_idempotent(tmp_path):
    fake = make_fake([512, 512])
    v = await validated(tmp_path, [512, 512])
    stage = PartitionStage(fake)
    planned = await stage.plan(v)

    out = await stage.apply(v)

    assert out == planned.predicted
    sfdisk = [c for c in fake.calls if c[0] == "sfdisk"]
    assert sfdisk == [
        ["sfdisk", "--wipe", "always", "/dev/nvme0n1"],
        ["sfdisk", "--wipe", "always", "/dev/nvme1n1"],
    ]
    assert fake.commands().count("partprobe") == 2

    fake.reset_calls()
    again = await stage.plan(v)
    assert again.pending == ()
    assert again.predicted == out
    await stage.apply(v)
    assert fake.mutating_calls() == []


@pytest.mark.asyncio
async def test_existing_layout_with_filesystem_labels_only_is_accepted(tmp_path):
    fake = make_fake([512])
    fake.add_partitions(
        "/dev/nvme0n1",
        [(None, "vfat", "boot")] + [(None, "ext4", label) for label in ("root", "var", "music", "metadata", "cdj-export")],
    )
    step = await PartitionStage(fake).plan(await validated(tmp_path, [512]))
    assert step.pending == ()


@pytest.mark.asyncio
async def test_foreign_layout_is_repartitioned(tmp_path):
    fake = make_fake([512])
    fake.add_partitions("/dev/nvme0n1", [("EFI", "vfat", "EFI"), ("rootfs", "ext4", "rootfs")])
    v = await validated(tmp_path, [512])
    stage = PartitionStage(fake)

    assert (await stage.plan(v)).pending
    await stage.apply(v)
    parts = fake.disks["/dev/nvme0n1"]["parts"]
    assert [p["partlabel"] for p in parts] == ["boot", "root", "var", "music", "metadata", "cdj-export"]


@pytest.mark.asyncio
async def test_unreadable_table_is_a_planning_error(tmp_path):
    fake = make_fake([512])
    fake.fail("lsblk", 32, "lsblk: cannot open")
    with pytest.raises(PlanningError, match="cannot read partition table of /dev/nvme0n1"):
        await PartitionStage(fake).plan(await validated(tmp_path, [512]))


@pytest.mark.asyncio
async def test_sfdisk_failure_carries_command_diagnostics(tmp_path):
    fake = make_fake([512])
    fake.fail("sfdisk", 1, "sfdisk: device busy")
    with pytest.raises(CommandError) as exc:
        await PartitionStage(fake).apply(await validated(tmp_path, [512]))
    assert exc.value.returncode == 1
    assert "device busy" in str(exc.value)
    assert fake.commands().count("partprobe") == 0
