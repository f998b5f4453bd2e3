from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .errors import OutputMismatchError, StageError
from .events import (
    DEFAULT_CAPACITY,
    ProgressChannel,
    ProgressEvent,
    StageComplete,
    StageFailed,
    StageProgress,
    StageStarted,
)
from .plan import ProvisioningPlan
from .stage import PlannedStep, Progress

logger = logging.getLogger(__name__)

Emit = Callable[[ProgressEvent], Awaitable[None]]
Observer = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


class StepState(str, Enum):
    STARTED = "started"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class ExecutionResult:
    ok: bool
    states: Dict[str, StepState] = field(default_factory=dict)
    outputs: List[Any] = field(default_factory=list)
    error: Optional[StageError] = None

    @property
    def final_output(self) -> Any:
        return self.outputs[-1] if self.ok and self.outputs else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "states": {k: v.value for k, v in self.states.items()},
            "outputs": [str(o) for o in self.outputs],
            "error": self.error.to_dict() if self.error else None,
        }


async def _discard(event: ProgressEvent) -> None:
    return None


class ExecutionEngine:
    """Apply the steps of a plan in order, stopping at the first failure."""

    def __init__(self, emit: Optional[Emit] = None):
        self._emit = emit or _discard

    def _progress_for(self, stage_id: str) -> Progress:
        async def progress(message: str) -> None:
            logger.info("[%s] %s", stage_id, message)
            await self._emit(StageProgress(stage_id, message))

        return progress

    async def _fail(
        self, result: ExecutionResult, step: PlannedStep, cause: BaseException
    ) -> ExecutionResult:
        err = StageError(step.stage_id, step.description, cause)
        logger.error("Step %s failed: %s", step.stage_id, cause)
        result.states[step.stage_id] = StepState.FAILED
        result.ok = False
        result.error = err
        await self._emit(StageFailed(step.stage_id, err))
        return result

    async def execute(self, plan: ProvisioningPlan) -> ExecutionResult:
        plan.consume()
        result = ExecutionResult(ok=True)
        value: Any = None

        for i, step in enumerate(plan.steps):
            result.states[step.stage_id] = StepState.STARTED
            await self._emit(StageStarted(step.stage_id, step.description))

            stage_input = step.input if i == 0 else value
            result.states[step.stage_id] = StepState.RUNNING
            logger.info("Running step %s", step.stage_id)
            try:
                actual = await step.stage.apply(stage_input, self._progress_for(step.stage_id))
            except Exception as e:
                return await self._fail(result, step, e)

            if actual != step.predicted:
                return await self._fail(result, step, OutputMismatchError(step.predicted, actual))

            result.states[step.stage_id] = StepState.COMPLETE
            result.outputs.append(actual)
            await self._emit(StageComplete(step.stage_id))
            value = actual

        return result


async def run_plan(
    plan: ProvisioningPlan,
    on_event: Optional[Observer] = None,
    *,
    capacity: int = DEFAULT_CAPACITY,
) -> ExecutionResult:
    """Execute a plan while one consumer task drains progress events.

    ``on_event`` may be a plain function or a coroutine function. Its failures
    are logged; they never interrupt the run.
    """

    channel = ProgressChannel(capacity)

    async def consume() -> None:
        async for event in channel:
            if on_event is None:
                continue
            try:
                r = on_event(event)
                if inspect.isawaitable(r):
                    await r
            except Exception:
                logger.exception("Progress observer failed on %s", event)

    consumer = asyncio.create_task(consume())
    try:
        return await ExecutionEngine(channel.send).execute(plan)
    finally:
        await channel.close()
        await consumer
