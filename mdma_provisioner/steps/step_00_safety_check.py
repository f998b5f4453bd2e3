from __future__ import annotations

import logging
from typing import Callable, Optional

from ..errors import SafetyError
from ..hardware import HardwareSnapshot
from ..models import VerifiedHardware
from ..stage import PlannedStep, Progress, Stage, no_progress

logger = logging.getLogger(__name__)

IdentityProbe = Callable[[], Optional[str]]


class SafetyCheckStage(Stage[HardwareSnapshot, VerifiedHardware]):
    """Refuse to go any further unless this is the expected device class.

    The snapshot's model string is checked against the expected marker. When an
    identity probe is configured (the device-tree model in production), the
    live host has to match as well, at plan time and again right before apply.
    """

    stage_id = "00_safety_check"
    description = "Verify running on the target hardware"
    input_type = HardwareSnapshot
    output_type = VerifiedHardware

    def __init__(self, expected_model: str = "Raspberry Pi", identity_probe: Optional[IdentityProbe] = None):
        self.expected_model = expected_model
        self.identity_probe = identity_probe

    def _check(self, snapshot: HardwareSnapshot) -> None:
        if self.expected_model not in snapshot.model:
            raise SafetyError(
                f"Not running on {self.expected_model}: hardware snapshot reports {snapshot.model!r}"
            )
        if self.identity_probe is not None:
            host = self.identity_probe()
            if host is None or self.expected_model not in host:
                raise SafetyError(
                    f"Host identity {host!r} does not match {self.expected_model}; refusing to provision"
                )

    async def plan(self, input: HardwareSnapshot) -> PlannedStep[HardwareSnapshot, VerifiedHardware]:
        self._check(input)
        return self.planned(input, VerifiedHardware(info=input))

    async def apply(self, input: HardwareSnapshot, progress: Progress = no_progress) -> VerifiedHardware:
        self._check(input)
        await progress(f"Running on {input.model}")
        return VerifiedHardware(info=input)
