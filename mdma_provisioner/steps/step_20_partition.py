from __future__ import annotations

import logging
from typing import List

from ..errors import CommandError, ExecutionError, PlanningError
from ..lib.block import BlockTree, read_block_tree
from ..lib.command import CommandRunner
from ..lib.storage import compute_layouts, render_sfdisk_script
from ..models import DriveLayout, PartitionedDrives, ValidatedHardware
from ..stage import PlannedStep, Progress, Stage, no_progress

logger = logging.getLogger(__name__)


def layout_present(tree: BlockTree, layout: DriveLayout) -> bool:
    """True when the drive already carries exactly the planned partitions, in order."""

    if len(tree.children) != len(layout.partitions):
        return False
    return all(
        child.path == p.device and child.effective_label == p.label
        for child, p in zip(tree.children, layout.partitions)
    )


class PartitionStage(Stage[ValidatedHardware, PartitionedDrives]):
    stage_id = "20_partition"
    description = "Partition drives"
    input_type = ValidatedHardware
    output_type = PartitionedDrives

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    async def _present(self, layout: DriveLayout) -> bool:
        tree = await read_block_tree(self.runner, layout.device)
        present = layout_present(tree, layout)
        logger.info(
            "%s: existing=%s planned=%s present=%s",
            layout.device,
            tree.labels(),
            layout.labels,
            present,
        )
        return present

    async def plan(self, input: ValidatedHardware) -> PlannedStep[ValidatedHardware, PartitionedDrives]:
        layouts = compute_layouts(input)
        pending: List[str] = []
        for layout in layouts:
            try:
                present = await self._present(layout)
            except (CommandError, ValueError) as e:
                raise PlanningError(f"cannot read partition table of {layout.device}: {e}") from e
            if not present:
                pending.append(f"write GPT table on {layout.device}: {', '.join(layout.labels)}")

        return self.planned(input, PartitionedDrives(validated=input, layouts=layouts), pending)

    async def apply(self, input: ValidatedHardware, progress: Progress = no_progress) -> PartitionedDrives:
        layouts = compute_layouts(input)

        for layout in layouts:
            try:
                if await self._present(layout):
                    await progress(f"{layout.device} already partitioned, skipping")
                    continue
            except ValueError as e:
                raise ExecutionError(f"cannot read partition table of {layout.device}: {e}") from e

            await progress(f"Writing partition table on {layout.device}")
            await self.runner.run(["sfdisk", "--wipe", "always", layout.device], input_text=render_sfdisk_script(layout))
            await self.runner.run(["partprobe", layout.device])

            try:
                ok = await self._present(layout)
            except ValueError as e:
                raise ExecutionError(f"cannot read partition table of {layout.device}: {e}") from e
            if not ok:
                raise ExecutionError(f"{layout.device} does not show the expected partitions after sfdisk")
            for p in layout.partitions:
                await progress(f"Created {p}")

        return PartitionedDrives(validated=input, layouts=layouts)
