from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Tuple

from .errors import PlanConsumedError, PlanError, PlanTypeError, StageError
from .stage import PlannedStep, Stage, type_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepSummary:
    stage_id: str
    description: str
    predicted: str
    pending: Tuple[str, ...]

    def as_tuple(self) -> Tuple[str, str, str]:
        return (self.stage_id, self.description, self.predicted)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage_id": self.stage_id,
            "description": self.description,
            "predicted": self.predicted,
            "pending": list(self.pending),
        }


async def _plan_stage(stage: Stage, input: Any) -> PlannedStep:
    logger.info("Planning step %s", stage.stage_id)
    try:
        step = await stage.plan(input)
    except Exception as e:
        raise StageError(stage.stage_id, stage.description, e, phase="plan") from e

    if not isinstance(step.predicted, stage.output_type):
        raise PlanTypeError(
            f"{stage.stage_id} planned a {type_name(type(step.predicted))}, "
            f"declared output is {type_name(stage.output_type)}"
        )
    for item in step.pending:
        logger.info("  %s: %s", stage.stage_id, item)
    return step


class ProvisioningPlan:
    """Ordered chain of planned steps.

    Adjacent steps are type checked when a stage is appended, before that
    stage gets to plan. A plan can be executed once.
    """

    def __init__(self, steps: Tuple[PlannedStep, ...]):
        if not steps:
            raise PlanError("a plan needs at least one step")
        self._steps = tuple(steps)
        self._consumed = False

    @classmethod
    async def start(cls, stage: Stage, input: Any) -> "ProvisioningPlan":
        if not isinstance(input, stage.input_type):
            raise PlanTypeError(
                f"{stage.stage_id} expects {type_name(stage.input_type)}, got {type_name(type(input))}"
            )
        return cls((await _plan_stage(stage, input),))

    async def then(self, stage: Stage) -> "ProvisioningPlan":
        if self._consumed:
            raise PlanConsumedError("plan was already executed; build a fresh plan")
        last = self._steps[-1]
        produced = last.stage.output_type
        if not (isinstance(produced, type) and issubclass(produced, stage.input_type)):
            raise PlanTypeError(
                f"{stage.stage_id} expects {type_name(stage.input_type)}, "
                f"but {last.stage_id} produces {type_name(produced)}"
            )
        if any(s.stage_id == stage.stage_id for s in self._steps):
            raise PlanError(f"duplicate stage id in plan: {stage.stage_id}")

        step = await _plan_stage(stage, last.predicted)
        return ProvisioningPlan(self._steps + (step,))

    @property
    def steps(self) -> Tuple[PlannedStep, ...]:
        return self._steps

    @property
    def predicted(self) -> Any:
        return self._steps[-1].predicted

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def pending_work(self) -> bool:
        return any(s.pending for s in self._steps)

    def consume(self) -> None:
        if self._consumed:
            raise PlanConsumedError("plan was already executed; build a fresh plan")
        self._consumed = True

    def summary(self) -> List[StepSummary]:
        return [
            StepSummary(
                stage_id=s.stage_id,
                description=s.description,
                predicted=str(s.predicted),
                pending=s.pending,
            )
            for s in self._steps
        ]

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[PlannedStep]:
        return iter(self._steps)
