from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from ..models import Partition


@dataclass(frozen=True)
class FstabEntry:
    spec: str
    mountpoint: str
    fstype: str
    options: str = "defaults"
    dump: int = 0
    passno: int = 2

    def render(self) -> str:
        return f"{self.spec}\t{self.mountpoint}\t{self.fstype}\t{self.options}\t{self.dump}\t{self.passno}"


def render_fstab(entries: Iterable[FstabEntry]) -> str:
    lines = ["# /etc/fstab: generated by mdma-provisioner", ""]
    lines.extend(e.render() for e in entries)
    return "\n".join(lines) + "\n"


def entries_for(partitions: Iterable[Partition]) -> List[FstabEntry]:
    # Root first so it is mounted before anything nested under it.
    ordered = sorted(partitions, key=lambda p: (p.mount_point != "/", p.mount_point))
    return [
        FstabEntry(
            spec=f"LABEL={p.label}",
            mountpoint=p.mount_point,
            fstype=p.fstype,
            passno=1 if p.mount_point == "/" else 2,
        )
        for p in ordered
    ]
