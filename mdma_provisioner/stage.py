"""Two-phase stage contract.

A stage first *plans* against an input, inspecting the live system without
changing it, and returns a PlannedStep carrying the output it expects to
produce. Later it *applies* the same input, re-checking everything it looked at
during planning, performs whatever work is still pending and returns an output
that must compare equal to the prediction.

Already-satisfied goals are expressed through ``PlannedStep.pending`` being
empty. Outputs themselves never say whether work was done, so the prediction
for a provisioned device matches what the previous run returned.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Sequence, Tuple, TypeVar

I = TypeVar("I")
O = TypeVar("O")

Progress = Callable[[str], Awaitable[None]]


async def no_progress(message: str) -> None:
    return None


@dataclass(frozen=True)
class PlannedStep(Generic[I, O]):
    stage_id: str
    description: str
    stage: "Stage[I, O]" = field(compare=False, repr=False)
    input: I
    predicted: O
    pending: Tuple[str, ...] = ()

    @property
    def satisfied(self) -> bool:
        return not self.pending


class Stage(ABC, Generic[I, O]):
    stage_id: str = ""
    description: str = ""
    input_type: type = object
    output_type: type = object

    def clone(self) -> "Stage[I, O]":
        return copy.copy(self)

    def planned(self, input: I, predicted: O, pending: Sequence[str] = ()) -> PlannedStep[I, O]:
        return PlannedStep(
            stage_id=self.stage_id,
            description=self.description,
            stage=self.clone(),
            input=input,
            predicted=predicted,
            pending=tuple(pending),
        )

    @abstractmethod
    async def plan(self, input: I) -> PlannedStep[I, O]:
        ...

    @abstractmethod
    async def apply(self, input: I, progress: Progress = no_progress) -> O:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.stage_id}>"


def type_name(t: Any) -> str:
    return getattr(t, "__name__", repr(t))
