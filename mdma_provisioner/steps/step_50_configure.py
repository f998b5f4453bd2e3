from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..config import ProvisionConfig
from ..errors import ExecutionError
from ..lib.env import PATHS
from ..lib.fstab import entries_for, render_fstab
from ..lib.rootfs import link_target, read_text, target_path, write_if_changed
from ..models import ConfiguredSystem, InstalledSystem
from ..stage import PlannedStep, Progress, Stage, no_progress

logger = logging.getLogger(__name__)

AUTHORIZED_KEYS = "root/.ssh/authorized_keys"
WPA_SUPPLICANT_CONF = "etc/wpa_supplicant/wpa_supplicant.conf"

# relative path -> (contents, mode)
ManagedFiles = Dict[str, Tuple[str, Optional[int]]]


def render_hosts(hostname: str) -> str:
    return "\n".join(
        [
            "127.0.0.1\tlocalhost",
            f"127.0.1.1\t{hostname}",
            "",
            "# IPv6",
            "::1\tlocalhost ip6-localhost ip6-loopback",
            "ff02::1\tip6-allnodes",
            "ff02::2\tip6-allrouters",
            "",
        ]
    )


def render_wpa_supplicant(ssid: str, password: str) -> str:
    return "\n".join(
        [
            "ctrl_interface=DIR=/run/wpa_supplicant GROUP=wheel",
            "update_config=1",
            "",
            "network={",
            f'\tssid="{ssid}"',
            f'\tpsk="{password}"',
            "}",
            "",
        ]
    )


def enabled_services(cfg: ProvisionConfig) -> Tuple[str, ...]:
    services = list(cfg.services)
    if cfg.wifi is not None and "wpa_supplicant" not in services:
        services.append("wpa_supplicant")
    return tuple(services)


def managed_files(installed: InstalledSystem) -> ManagedFiles:
    cfg = installed.config
    files: ManagedFiles = {
        "etc/hostname": (cfg.hostname + "\n", None),
        "etc/hosts": (render_hosts(cfg.hostname), None),
        "etc/fstab": (render_fstab(entries_for(installed.partitioned.partitions)), None),
    }
    if cfg.ssh_key:
        files[AUTHORIZED_KEYS] = (cfg.ssh_key.strip() + "\n", 0o600)
    if cfg.wifi is not None:
        files[WPA_SUPPLICANT_CONF] = (render_wpa_supplicant(cfg.wifi.ssid, cfg.wifi.password), 0o600)
    return files


def service_link(root: str, service: str) -> Path:
    return target_path(root, f"{PATHS.runit_services}/{service}")


def service_dir(service: str) -> str:
    return f"/etc/sv/{service}"


class ConfigureStage(Stage[InstalledSystem, ConfiguredSystem]):
    """Write host identity and network configuration, enable runit services."""

    stage_id = "50_configure"
    description = "Configure identity, network and services"
    input_type = InstalledSystem
    output_type = ConfiguredSystem

    def _expected(self, input: InstalledSystem) -> ConfiguredSystem:
        return ConfiguredSystem(
            installed=input,
            hostname=input.config.hostname,
            services=enabled_services(input.config),
            files=tuple("/" + rel for rel in managed_files(input)),
        )

    async def plan(self, input: InstalledSystem) -> PlannedStep[InstalledSystem, ConfiguredSystem]:
        root = input.target_root
        pending: List[str] = []
        for rel, (contents, _mode) in managed_files(input).items():
            if read_text(target_path(root, rel)) != contents:
                pending.append(f"write /{rel}")
        for svc in enabled_services(input.config):
            if link_target(service_link(root, svc)) != service_dir(svc):
                pending.append(f"enable service {svc}")

        return self.planned(input, self._expected(input), pending)

    async def apply(self, input: InstalledSystem, progress: Progress = no_progress) -> ConfiguredSystem:
        root = input.target_root

        for rel, (contents, mode) in managed_files(input).items():
            if rel == AUTHORIZED_KEYS:
                ssh_dir = target_path(root, "root/.ssh")
                ssh_dir.mkdir(parents=True, exist_ok=True)
                ssh_dir.chmod(0o700)
            if write_if_changed(root, rel, contents, mode=mode):
                await progress(f"Wrote /{rel}")
            else:
                await progress(f"/{rel} up to date")

        for svc in enabled_services(input.config):
            link = service_link(root, svc)
            if link_target(link) == service_dir(svc):
                await progress(f"Service {svc} already enabled")
                continue
            if not target_path(root, service_dir(svc)).is_dir():
                raise ExecutionError(f"service {svc} is not installed (missing {service_dir(svc)})")
            if link.is_symlink() or link.exists():
                link.unlink()
            link.parent.mkdir(parents=True, exist_ok=True)
            link.symlink_to(service_dir(svc))
            await progress(f"Enabled service {svc}")

        return self._expected(input)
