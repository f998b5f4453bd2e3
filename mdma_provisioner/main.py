from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Callable, Dict, Optional

from .config import load_provision_config
from .errors import ProvisioningError
from .events import ProgressEvent, StageFailed, StageProgress, StageStarted
from .hardware import load_hardware_snapshot
from .lib.command import CommandRunner, SubprocessRunner
from .lib.env import PATHS
from .lib.hostid import read_host_model
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .pipeline import provision
from .plan import ProvisioningPlan
from .report_store import new_report, save_report
from .steps.step_00_safety_check import IdentityProbe

logger = logging.getLogger(__name__)

DEFAULT_REPORT_PATH = PATHS.report_default

Echo = Callable[[str], None]


def _echo(line: str) -> None:
    print(line, flush=True)


def render_plan(plan: ProvisioningPlan, echo: Echo) -> None:
    for s in plan.summary():
        echo(f"[{s.stage_id}] {s.description}")
        for line in s.predicted.splitlines():
            echo(f"    {line}")
        if s.pending:
            for item in s.pending:
                echo(f"    - {item}")
        else:
            echo("    (already satisfied)")


def render_event(event: ProgressEvent, echo: Echo) -> None:
    if isinstance(event, StageStarted):
        echo(f">>> {event.stage_id}: {event.description}")
    elif isinstance(event, StageProgress):
        echo(f"    {event.message}")
    elif isinstance(event, StageFailed):
        echo(f"!!! {event.stage_id} failed: {event.error}")
    else:
        echo(f"<<< {event.stage_id} complete")


def run(
    *,
    config_path: str,
    hardware_path: str,
    apply: bool = False,
    log_path: str = DEFAULT_LOG_PATH,
    report_path: Optional[str] = DEFAULT_REPORT_PATH,
    runner: Optional[CommandRunner] = None,
    identity_probe: Optional[IdentityProbe] = read_host_model,
    echo: Echo = _echo,
) -> Dict[str, Any]:
    """Build the provisioning plan and apply it when asked to; returns the run report."""

    actual_log_path = configure_logging(log_path=log_path)

    report = new_report("apply" if apply else "check")
    report["log_path"] = actual_log_path

    def on_event(event: ProgressEvent) -> None:
        report["events"].append(event.to_dict())
        render_event(event, echo)

    try:
        config = load_provision_config(config_path)
        snapshot = load_hardware_snapshot(hardware_path)
        report["config"] = config.to_dict()
        report["hardware"] = snapshot.to_dict()

        outcome = asyncio.run(
            provision(
                snapshot,
                config,
                runner or SubprocessRunner(),
                apply=apply,
                on_event=on_event,
                identity_probe=identity_probe,
            )
        )
        report["plan"] = [s.to_dict() for s in outcome.plan.summary()]
        if not apply:
            echo("Dry run (use --apply to provision):")
            render_plan(outcome.plan, echo)
            return report

        result = outcome.result
        report["result"] = result.to_dict()
        if not result.ok:
            raise result.error
        echo(str(result.final_output))
        return report
    except Exception as e:
        logger.exception("Provisioning failed")
        err: Dict[str, Any] = {"error": str(e), "error_type": type(e).__name__}
        if hasattr(e, "to_dict"):
            err = e.to_dict()
        report["errors"].append(err)
        raise
    finally:
        if report_path:
            save_report(report_path, report)


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="mdma-provision")
    p.add_argument("--config", required=True, help="Provisioning config (yaml|json)")
    p.add_argument("--hardware", required=True, help="Hardware snapshot (json|yaml)")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--check", dest="apply", action="store_false", help="Build and show the plan only (default)")
    mode.add_argument("--apply", dest="apply", action="store_true", help="Build the plan and execute it")
    p.set_defaults(apply=False)
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to provisioning log")
    p.add_argument("--report", default=DEFAULT_REPORT_PATH, help="Path to run report (json|yaml)")

    args = p.parse_args(argv)

    try:
        run(
            config_path=args.config,
            hardware_path=args.hardware,
            apply=args.apply,
            log_path=args.log,
            report_path=args.report,
        )
    except ProvisioningError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0
