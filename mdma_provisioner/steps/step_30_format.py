from __future__ import annotations

import logging
from typing import Dict, List

from ..errors import CommandError, ExecutionError, PlanningError
from ..lib.block import BlockTree, mount_targets, read_block_tree
from ..lib.command import CommandRunner
from ..lib.storage import mkfs_argv
from ..models import FormattedSystem, Partition, PartitionedDrives
from ..stage import PlannedStep, Progress, Stage, no_progress

logger = logging.getLogger(__name__)


def is_formatted(tree: BlockTree, partition: Partition) -> bool:
    child = tree.child(partition.device)
    return child is not None and child.fstype == partition.fstype and child.label == partition.label


class FormatStage(Stage[PartitionedDrives, FormattedSystem]):
    stage_id = "30_format"
    description = "Format partitions"
    input_type = PartitionedDrives
    output_type = FormattedSystem

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    async def _trees(self, partitioned: PartitionedDrives) -> Dict[str, BlockTree]:
        return {layout.device: await read_block_tree(self.runner, layout.device) for layout in partitioned.layouts}

    async def plan(self, input: PartitionedDrives) -> PlannedStep[PartitionedDrives, FormattedSystem]:
        try:
            trees = await self._trees(input)
        except (CommandError, ValueError) as e:
            raise PlanningError(f"cannot inspect filesystems: {e}") from e

        pending: List[str] = []
        for layout in input.layouts:
            for p in layout.partitions:
                # Partitions the previous step has yet to create count as unformatted.
                if not is_formatted(trees[layout.device], p):
                    pending.append(f"mkfs.{p.fstype} {p.device} (label {p.label})")

        return self.planned(input, FormattedSystem(partitioned=input), pending)

    async def apply(self, input: PartitionedDrives, progress: Progress = no_progress) -> FormattedSystem:
        try:
            trees = await self._trees(input)
        except ValueError as e:
            raise ExecutionError(f"cannot inspect filesystems: {e}") from e

        for layout in input.layouts:
            tree = trees[layout.device]
            for p in layout.partitions:
                if is_formatted(tree, p):
                    await progress(f"{p.device} already {p.fstype} (label: {p.label})")
                    continue

                for target in await mount_targets(self.runner, p.device):
                    await progress(f"Unmounting {p.device} from {target}")
                    await self.runner.run(["umount", target])

                await progress(f"Formatting {p.device} as {p.fstype} (label: {p.label})")
                await self.runner.run(mkfs_argv(p))

        try:
            trees = await self._trees(input)
        except ValueError as e:
            raise ExecutionError(f"cannot inspect filesystems: {e}") from e
        bad = [
            p.device
            for layout in input.layouts
            for p in layout.partitions
            if not is_formatted(trees[layout.device], p)
        ]
        if bad:
            raise ExecutionError(f"filesystem check failed after formatting: {', '.join(bad)}")

        return FormattedSystem(partitioned=input)
