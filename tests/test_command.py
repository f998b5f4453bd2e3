from __future__ import annotations

import sys

import pytest

from mdma_provisioner.errors import CommandError
from mdma_provisioner.lib.block import parse_lsblk
from mdma_provisioner.lib.command import SubprocessRunner


@pytest.mark.asyncio
async def test_runner_captures_output():
    r = await SubprocessRunner().run([sys.executable, "-c", "print('hello')"])
    assert r.returncode == 0
    assert r.stdout.strip() == "hello"


@pytest.mark.asyncio
async def test_runner_feeds_stdin():
    r = await SubprocessRunner().run(
        [sys.executable, "-c", "import sys; print(sys.stdin.read().upper())"],
        input_text="label: gpt\n",
    )
    assert "LABEL: GPT" in r.stdout


@pytest.mark.asyncio
async def test_runner_raises_with_diagnostics():
    with pytest.raises(CommandError) as exc:
        await SubprocessRunner().run([sys.executable, "-c", "import sys; sys.stderr.write('nope'); sys.exit(3)"])
    assert exc.value.returncode == 3
    assert exc.value.stderr == "nope"
    assert "nope" in str(exc.value)


@pytest.mark.asyncio
async def test_runner_check_false_returns_result():
    r = await SubprocessRunner().run([sys.executable, "-c", "raise SystemExit(2)"], check=False)
    assert r.returncode == 2


@pytest.mark.asyncio
async def test_missing_binary_is_command_error():
    with pytest.raises(CommandError) as exc:
        await SubprocessRunner().run(["definitely-not-a-real-binary-mdma"])
    assert exc.value.returncode == 127


@pytest.mark.asyncio
async def test_timeout():
    with pytest.raises(CommandError, match="timed out"):
        await SubprocessRunner(timeout_s=0.2).run([sys.executable, "-c", "import time; time.sleep(5)"])


def test_parse_lsblk_prefers_partition_name():
    tree = parse_lsblk(
        '{"blockdevices": [{"name": "nvme0n1", "size": 512000000000, "children": ['
        '{"name": "nvme0n1p1", "size": "16000000000", "fstype": "ext4", "label": "rootfs", "partlabel": "root"},'
        '{"name": "nvme0n1p2", "size": null, "fstype": null, "label": "var", "partlabel": null}]}]}'
    )
    assert tree.labels() == ["root", "var"]
    assert tree.child("/dev/nvme0n1p1").size == 16000000000
    assert tree.child("/dev/nvme0n1p2").fstype is None
    assert tree.child("/dev/nvme0n1p9") is None


def test_parse_lsblk_rejects_garbage():
    with pytest.raises(ValueError):
        parse_lsblk('{"blockdevices": []}')
