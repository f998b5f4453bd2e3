from .step_00_safety_check import SafetyCheckStage
from .step_10_validate import ValidateStage
from .step_20_partition import PartitionStage
from .step_30_format import FormatStage
from .step_40_install import InstallStage
from .step_50_configure import ConfigureStage
from .step_60_finalize import FinalizeStage

__all__ = [
    "SafetyCheckStage",
    "ValidateStage",
    "PartitionStage",
    "FormatStage",
    "InstallStage",
    "ConfigureStage",
    "FinalizeStage",
]
