from __future__ import annotations

import logging
import os
from typing import List

from ..errors import VerificationError
from ..lib.block import mount_targets
from ..lib.command import CommandRunner
from ..lib.rootfs import link_target, read_release, read_text, target_path
from ..models import ConfiguredSystem, ProvisionedSystem, ProvisioningSummary
from ..stage import PlannedStep, Progress, Stage, no_progress
from .step_40_install import payload_name
from .step_50_configure import service_dir, service_link

logger = logging.getLogger(__name__)


def build_summary(configured: ConfiguredSystem) -> ProvisioningSummary:
    validated = configured.installed.partitioned.validated
    secondary = validated.secondary
    return ProvisioningSummary(
        hostname=configured.hostname,
        unit_type=validated.config.unit_type,
        primary_drive=validated.primary.device,
        secondary_drive=secondary.device if secondary is not None else None,
        total_partitions=len(configured.installed.partitioned.partitions),
    )


class FinalizeStage(Stage[ConfiguredSystem, ProvisionedSystem]):
    stage_id = "60_finalize"
    description = "Verify installation"
    input_type = ConfiguredSystem
    output_type = ProvisionedSystem

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    async def verify(self, configured: ConfiguredSystem) -> List[str]:
        installed = configured.installed
        root = installed.target_root
        problems: List[str] = []

        root_part = installed.partitioned.partition_for("/")
        if root_part is not None:
            targets = [os.path.normpath(t) for t in await mount_targets(self.runner, root_part.device)]
            if os.path.normpath(root) not in targets:
                problems.append(f"{root_part.device} is not mounted at {root}")

        if read_release(root) != payload_name(installed.config.payload):
            problems.append("release marker missing or does not name the installed payload")

        hostname = read_text(target_path(root, "etc/hostname"))
        if hostname is None or hostname.strip() != configured.hostname:
            problems.append(f"/etc/hostname does not contain {configured.hostname}")

        fstab = read_text(target_path(root, "etc/fstab")) or ""
        for p in installed.partitioned.partitions:
            if f"LABEL={p.label}\t{p.mount_point}\t" not in fstab:
                problems.append(f"/etc/fstab has no entry for {p.mount_point} (LABEL={p.label})")

        for svc in configured.services:
            if link_target(service_link(root, svc)) != service_dir(svc):
                problems.append(f"service {svc} is not enabled")

        return problems

    async def plan(self, input: ConfiguredSystem) -> PlannedStep[ConfiguredSystem, ProvisionedSystem]:
        return self.planned(input, ProvisionedSystem(configured=input, summary=build_summary(input)))

    async def apply(self, input: ConfiguredSystem, progress: Progress = no_progress) -> ProvisionedSystem:
        problems = await self.verify(input)
        if problems:
            raise VerificationError(problems)

        summary = build_summary(input)
        for line in summary.lines():
            await progress(line)
        return ProvisionedSystem(configured=input, summary=summary)
