from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from .config import ProvisionConfig
from .engine import ExecutionResult, Observer, run_plan
from .events import DEFAULT_CAPACITY
from .hardware import HardwareSnapshot
from .lib.command import CommandRunner
from .plan import ProvisioningPlan
from .stage import Stage
from .steps import (
    ConfigureStage,
    FinalizeStage,
    FormatStage,
    InstallStage,
    PartitionStage,
    SafetyCheckStage,
    ValidateStage,
)
from .steps.step_00_safety_check import IdentityProbe

logger = logging.getLogger(__name__)


def iter_stages(
    config: ProvisionConfig,
    runner: CommandRunner,
    identity_probe: Optional[IdentityProbe] = None,
) -> Iterator[Stage]:
    """Stages in pipeline order, created only when the plan reaches them."""

    yield SafetyCheckStage(config.expected_model, identity_probe)
    yield ValidateStage(config)
    yield PartitionStage(runner)
    yield FormatStage(runner)
    yield InstallStage(runner)
    yield ConfigureStage()
    yield FinalizeStage(runner)


async def build_plan(
    snapshot: HardwareSnapshot,
    config: ProvisionConfig,
    runner: CommandRunner,
    identity_probe: Optional[IdentityProbe] = None,
) -> ProvisioningPlan:
    stages = iter_stages(config, runner, identity_probe)
    plan = await ProvisioningPlan.start(next(stages), snapshot)
    for stage in stages:
        plan = await plan.then(stage)
    logger.info("Plan built: %d steps, pending work: %s", len(plan), plan.pending_work)
    return plan


@dataclass
class ProvisionOutcome:
    plan: ProvisioningPlan
    result: Optional[ExecutionResult] = None

    @property
    def applied(self) -> bool:
        return self.result is not None


async def provision(
    snapshot: HardwareSnapshot,
    config: ProvisionConfig,
    runner: CommandRunner,
    *,
    apply: bool = False,
    on_event: Optional[Observer] = None,
    identity_probe: Optional[IdentityProbe] = None,
    capacity: int = DEFAULT_CAPACITY,
) -> ProvisionOutcome:
    """Build the plan and, only when `apply` is set, execute it."""

    plan = await build_plan(snapshot, config, runner, identity_probe)
    if not apply:
        logger.info("Dry run: plan not applied")
        return ProvisionOutcome(plan=plan)

    result = await run_plan(plan, on_event, capacity=capacity)
    return ProvisionOutcome(plan=plan, result=result)
