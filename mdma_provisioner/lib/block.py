from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .command import CommandRunner

logger = logging.getLogger(__name__)

LSBLK_COLUMNS = "NAME,SIZE,TYPE,FSTYPE,LABEL,PARTLABEL"


@dataclass(frozen=True)
class BlockEntry:
    name: str
    size: int = 0
    fstype: Optional[str] = None
    label: Optional[str] = None
    partlabel: Optional[str] = None

    @property
    def path(self) -> str:
        return self.name if self.name.startswith("/") else f"/dev/{self.name}"

    @property
    def effective_label(self) -> Optional[str]:
        # GPT partition name first (set by sfdisk name=), then the filesystem label.
        return self.partlabel or self.label


@dataclass(frozen=True)
class BlockTree:
    device: BlockEntry
    children: Tuple[BlockEntry, ...] = ()

    def child(self, path: str) -> Optional[BlockEntry]:
        for c in self.children:
            if c.path == path:
                return c
        return None

    def labels(self) -> List[Optional[str]]:
        return [c.effective_label for c in self.children]


def _entry(raw: Dict[str, Any]) -> BlockEntry:
    name = raw.get("name")
    if not name:
        raise ValueError("lsblk entry without a name")
    size = raw.get("size") or 0
    try:
        size = int(size)
    except (TypeError, ValueError):
        # Human-readable sizes (lsblk without -b) are not comparable; keep 0.
        size = 0
    return BlockEntry(
        name=str(name),
        size=size,
        fstype=raw.get("fstype") or None,
        label=raw.get("label") or None,
        partlabel=raw.get("partlabel") or None,
    )


def parse_lsblk(text: str) -> BlockTree:
    """Parse `lsblk -J` output for a single device into a BlockTree."""

    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("lsblk JSON must be an object")
    devices = data.get("blockdevices")
    if not isinstance(devices, list) or not devices:
        raise ValueError("lsblk JSON missing blockdevices")

    top = devices[0]
    children = tuple(_entry(c) for c in (top.get("children") or []))
    return BlockTree(device=_entry(top), children=children)


async def read_block_tree(runner: CommandRunner, device: str) -> BlockTree:
    r = await runner.run(["lsblk", "-J", "-b", "-o", LSBLK_COLUMNS, device])
    tree = parse_lsblk(r.stdout)
    logger.debug("lsblk %s: %s", device, [(c.name, c.effective_label, c.fstype) for c in tree.children])
    return tree


async def mount_targets(runner: CommandRunner, device: str) -> List[str]:
    """Return every mount point of a device (empty when not mounted)."""

    r = await runner.run(["findmnt", "-n", "-o", "TARGET", device], check=False)
    if r.returncode != 0:
        return []
    return [ln.strip() for ln in r.stdout.splitlines() if ln.strip()]
