from __future__ import annotations

from typing import Any, Sequence


class ProvisioningError(RuntimeError):
    """Base class for every failure raised by the provisioning core."""


class ConfigError(ProvisioningError, ValueError):
    pass


class SafetyError(ProvisioningError):
    """Not running on the expected target hardware."""


class ValidationError(ProvisioningError):
    """Requested configuration cannot be satisfied by the available hardware."""


class PlanningError(ProvisioningError):
    """A stage could not determine the current state of the system."""


class PlanError(ProvisioningError):
    pass


class PlanTypeError(PlanError, TypeError):
    pass


class PlanConsumedError(PlanError):
    pass


class ExecutionError(ProvisioningError):
    pass


class VerificationError(ExecutionError):
    def __init__(self, problems: Sequence[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class CommandError(ExecutionError):
    def __init__(self, argv: Sequence[str], returncode: int, stdout: str = "", stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        detail = (stderr or stdout or "").strip()
        msg = f"Command failed ({returncode}): {' '.join(self.argv)}"
        if detail:
            msg += f"\n{detail}"
        super().__init__(msg)


class OutputMismatchError(ProvisioningError):
    def __init__(self, predicted: Any, actual: Any):
        self.predicted = predicted
        self.actual = actual
        super().__init__(f"unexpected output: planned {predicted!r}, got {actual!r}")


class StageError(ProvisioningError):
    """A stage failed while planning or applying.

    Carries the stage identity and description so an operator can tell which
    step of the pipeline broke without knowing its internals.
    """

    def __init__(self, stage_id: str, description: str, cause: BaseException, *, phase: str = "apply"):
        self.stage_id = stage_id
        self.description = description
        self.cause = cause
        self.phase = phase
        super().__init__(f"{stage_id} ({description}) failed: {cause}")

    def to_dict(self) -> dict:
        d = {
            "stage_id": self.stage_id,
            "description": self.description,
            "phase": self.phase,
            "error_type": type(self.cause).__name__,
            "error": str(self.cause),
        }
        if isinstance(self.cause, CommandError):
            d["command"] = {
                "argv": self.cause.argv,
                "returncode": self.cause.returncode,
                "stdout": self.cause.stdout,
                "stderr": self.cause.stderr,
            }
        return d
