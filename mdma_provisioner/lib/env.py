from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    target_root: str = "/mnt/mdma"
    report_default: str = "/var/lib/mdma-provisioner/last-run.json"
    log_default: str = "/var/log/mdma-provisioner.log"
    device_tree_model: str = "/proc/device-tree/model"
    release_marker: str = "etc/mdma-release"
    runit_services: str = "etc/runit/runsvdir/default"


PATHS = Paths()
