from __future__ import annotations

import logging
from typing import List

from ..config import ProvisionConfig, UnitType
from ..errors import ValidationError
from ..lib.storage import MIN_CACHE_UNIT_GB, MIN_SINGLE_DRIVE_GB, OS_OVERHEAD_GB
from ..models import GB, DriveInfo, ValidatedHardware, VerifiedHardware
from ..stage import PlannedStep, Progress, Stage, no_progress

logger = logging.getLogger(__name__)


def _listing(drives: List[DriveInfo]) -> str:
    if not drives:
        return ""
    return " (" + ", ".join(str(d) for d in drives) + ")"


class ValidateStage(Stage[VerifiedHardware, ValidatedHardware]):
    stage_id = "10_validate"
    input_type = VerifiedHardware
    output_type = ValidatedHardware

    def __init__(self, config: ProvisionConfig):
        self.config = config
        self.description = f"Validate hardware for {config.unit_type}"

    def candidate_drives(self, verified: VerifiedHardware) -> List[DriveInfo]:
        return [
            DriveInfo(device=d.path, size_bytes=d.size_bytes, model=d.model)
            for d in verified.info.devices
            if not d.removable and d.path.startswith(self.config.drive_prefix)
        ]

    def validate(self, verified: VerifiedHardware) -> ValidatedHardware:
        unit = self.config.unit_type
        prefix = self.config.drive_prefix
        drives = self.candidate_drives(verified)
        n = len(drives)

        if unit is UnitType.MDMA_909:
            if not 1 <= n <= 2:
                raise ValidationError(f"{unit} requires 1-2 {prefix}* drives, found {n}{_listing(drives)}")
        elif n != 1:
            raise ValidationError(f"{unit} requires exactly 1 {prefix}* drive, found {n}{_listing(drives)}")

        primary = drives[0]
        if unit is UnitType.MDMA_303:
            if primary.size_bytes <= MIN_CACHE_UNIT_GB * GB:
                raise ValidationError(
                    f"{primary.device} is {primary.size_bytes // GB}GB; {unit} needs more than "
                    f"{MIN_CACHE_UNIT_GB}GB (boot + root + var + cache)"
                )
        elif n == 2:
            if primary.size_bytes <= OS_OVERHEAD_GB * GB:
                raise ValidationError(
                    f"primary drive {primary.device} is {primary.size_bytes // GB}GB; needs more than "
                    f"{OS_OVERHEAD_GB}GB for boot, root, var and metadata"
                )
            if drives[1].size_bytes <= 0:
                raise ValidationError(f"secondary drive {drives[1].device} reports no capacity")
        elif primary.size_bytes < MIN_SINGLE_DRIVE_GB * GB:
            raise ValidationError(
                f"{primary.device} is {primary.size_bytes // GB}GB; a single-drive {unit} needs at least "
                f"{MIN_SINGLE_DRIVE_GB}GB (boot, root, var, metadata, music and CDJ export)"
            )

        return ValidatedHardware(config=self.config, drives=tuple(drives))

    async def plan(self, input: VerifiedHardware) -> PlannedStep[VerifiedHardware, ValidatedHardware]:
        return self.planned(input, self.validate(input))

    async def apply(self, input: VerifiedHardware, progress: Progress = no_progress) -> ValidatedHardware:
        validated = self.validate(input)
        if validated.secondary is None:
            await progress(f"Validated 1 drive: {validated.primary}")
            if self.config.unit_type is not UnitType.MDMA_303:
                await progress("Single drive: music and CDJ export share the primary drive")
        else:
            await progress(f"Primary: {validated.primary}")
            await progress(f"Secondary: {validated.secondary}")
        return validated
