from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple

from ..errors import CommandError, ExecutionError, PlanningError, ValidationError
from ..lib.block import mount_targets
from ..lib.command import CommandRunner
from ..lib.rootfs import read_release, write_release
from ..lib.storage import mount_argv
from ..models import FormattedSystem, InstalledSystem, Partition
from ..stage import PlannedStep, Progress, Stage, no_progress

logger = logging.getLogger(__name__)


def _norm(path: str) -> str:
    return os.path.normpath(path)


def payload_name(payload: str) -> str:
    return Path(payload).name


class InstallStage(Stage[FormattedSystem, InstalledSystem]):
    stage_id = "40_install"
    description = "Install base system"
    input_type = FormattedSystem
    output_type = InstalledSystem

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def mounts(self, formatted: FormattedSystem) -> List[Tuple[Partition, str]]:
        target = formatted.config.target_root
        out: List[Tuple[Partition, str]] = []
        # Root first; /boot and /var are mounted inside it.
        for mount_point in ("/", "/boot", "/var"):
            p = formatted.partitioned.partition_for(mount_point)
            if p is not None:
                out.append((p, _norm(os.path.join(target, mount_point.lstrip("/")))))
        return out

    async def _mounted(self, p: Partition, where: str) -> Optional[str]:
        """None when mounted at `where`, else a description of what is wrong (or "unmounted")."""

        targets = [_norm(t) for t in await mount_targets(self.runner, p.device)]
        if where in targets:
            return None
        if targets:
            return f"{p.device} is mounted at {', '.join(targets)}, expected {where}"
        return "unmounted"

    def _expected(self, input: FormattedSystem) -> InstalledSystem:
        cfg = input.config
        return InstalledSystem(formatted=input, target_root=cfg.target_root, payload=payload_name(cfg.payload))

    async def plan(self, input: FormattedSystem) -> PlannedStep[FormattedSystem, InstalledSystem]:
        cfg = input.config
        if not Path(cfg.payload).is_file():
            raise ValidationError(f"base system payload not found: {cfg.payload}")

        pending: List[str] = []
        root_mounted = False
        for p, where in self.mounts(input):
            try:
                state = await self._mounted(p, where)
            except CommandError as e:
                raise PlanningError(f"cannot inspect mounts of {p.device}: {e}") from e
            if state is None:
                root_mounted = root_mounted or p.mount_point == "/"
            elif state == "unmounted":
                pending.append(f"mount {p.device} at {where}")
            else:
                raise ValidationError(state)

        name = payload_name(cfg.payload)
        if not (root_mounted and read_release(cfg.target_root) == name):
            pending.append(f"extract {name} into {cfg.target_root}")

        return self.planned(input, self._expected(input), pending)

    async def apply(self, input: FormattedSystem, progress: Progress = no_progress) -> InstalledSystem:
        cfg = input.config
        if not Path(cfg.payload).is_file():
            raise ExecutionError(f"base system payload not found: {cfg.payload}")

        for p, where in self.mounts(input):
            state = await self._mounted(p, where)
            if state is None:
                await progress(f"{p.device} already mounted at {where}")
                continue
            if state != "unmounted":
                raise ExecutionError(state)
            Path(where).mkdir(parents=True, exist_ok=True)
            await progress(f"Mounting {p.device} at {where}")
            await self.runner.run(mount_argv(p, where))

        name = payload_name(cfg.payload)
        if read_release(cfg.target_root) == name:
            await progress(f"{name} already installed")
        else:
            await progress(f"Extracting {name} into {cfg.target_root}")
            await self.runner.run(["tar", "-xpf", cfg.payload, "-C", cfg.target_root])
            write_release(cfg.target_root, name)

        return self._expected(input)
