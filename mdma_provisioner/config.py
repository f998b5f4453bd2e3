from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .errors import ConfigError
from .lib.env import PATHS
from .lib.serialize import read_mapping

DEFAULT_SERVICES: Tuple[str, ...] = ("dbus", "avahi-daemon", "sshd", "beacon")

_HOSTNAME_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9.-]*")
_SSH_KEY_PREFIXES = ("ssh-rsa ", "ssh-ed25519 ", "ecdsa-sha2-")
_SERVICE_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9._@-]*")


class UnitType(str, Enum):
    MDMA_909 = "mdma-909"
    MDMA_101 = "mdma-101"
    MDMA_303 = "mdma-303"

    def __str__(self) -> str:
        return self.value


def validate_hostname(hostname: str) -> str:
    if not hostname or len(hostname) > 253:
        raise ConfigError("hostname must be 1-253 characters")
    if not _HOSTNAME_RE.fullmatch(hostname):
        raise ConfigError(
            f"invalid hostname {hostname!r}: use letters, digits, '-' and '.', not starting with '-' or '.'"
        )
    return hostname


def validate_ssh_key(key: str) -> str:
    key = key.strip()
    if not key.startswith(_SSH_KEY_PREFIXES):
        raise ConfigError("SSH key must start with ssh-rsa, ssh-ed25519 or ecdsa-sha2-")
    if len(key.split()) < 2:
        raise ConfigError("SSH key must contain a key type and key data")
    return key


def validate_service(name: str) -> str:
    # Becomes a path component under /etc/sv and the runsvdir.
    if not _SERVICE_RE.fullmatch(name):
        raise ConfigError(f"invalid service name {name!r}: use letters, digits, '.', '_', '@' and '-'")
    return name


@dataclass(frozen=True)
class WifiConfig:
    ssid: str
    password: str


@dataclass(frozen=True)
class ProvisionConfig:
    hostname: str
    unit_type: UnitType
    payload: str
    ssh_key: Optional[str] = None
    wifi: Optional[WifiConfig] = None
    services: Tuple[str, ...] = DEFAULT_SERVICES
    target_root: str = PATHS.target_root
    expected_model: str = "Raspberry Pi"
    drive_prefix: str = "/dev/nvme"

    def __post_init__(self) -> None:
        validate_hostname(self.hostname)
        if self.ssh_key is not None:
            validate_ssh_key(self.ssh_key)
        for name in self.services:
            validate_service(name)

    @classmethod
    def from_mapping(cls, raw: Dict[str, Any]) -> "ProvisionConfig":
        try:
            unit = UnitType(str(raw.get("unit_type") or ""))
        except ValueError as e:
            allowed = ", ".join(u.value for u in UnitType)
            raise ConfigError(f"unit_type must be one of: {allowed}") from e

        payload = raw.get("payload")
        if not payload:
            raise ConfigError("payload (base system tarball) is required")

        wifi = None
        w = raw.get("wifi")
        if w:
            if not isinstance(w, dict) or not w.get("ssid"):
                raise ConfigError("wifi requires an ssid")
            ssid = str(w["ssid"])
            password = str(w.get("password") or "")
            if not 8 <= len(password) <= 63:
                raise ConfigError("wifi password must be 8-63 characters")
            if any(c in value for value in (ssid, password) for c in '"\n'):
                raise ConfigError("wifi ssid/password may not contain quotes or newlines")
            wifi = WifiConfig(ssid=ssid, password=password)

        services = raw.get("services")
        if services is None:
            services = DEFAULT_SERVICES
        elif not isinstance(services, list) or not all(isinstance(s, str) and s for s in services):
            raise ConfigError("services must be a list of service names")

        ssh_key = raw.get("ssh_key")
        return cls(
            hostname=str(raw.get("hostname") or ""),
            unit_type=unit,
            payload=str(payload),
            ssh_key=validate_ssh_key(str(ssh_key)) if ssh_key else None,
            wifi=wifi,
            services=tuple(services),
            target_root=str(raw.get("target_root") or PATHS.target_root),
            expected_model=str(raw.get("expected_model") or "Raspberry Pi"),
            drive_prefix=str(raw.get("drive_prefix") or "/dev/nvme"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hostname": self.hostname,
            "unit_type": self.unit_type.value,
            "payload": self.payload,
            "ssh_key": bool(self.ssh_key),
            "wifi": self.wifi.ssid if self.wifi else None,
            "services": list(self.services),
            "target_root": self.target_root,
        }


def load_provision_config(path: str) -> ProvisionConfig:
    try:
        raw = read_mapping(path)
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read provisioning config {path}: {e}") from e
    return ProvisionConfig.from_mapping(raw)
