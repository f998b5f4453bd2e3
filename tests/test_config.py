from __future__ import annotations

import json

import pytest

from mdma_provisioner.config import DEFAULT_SERVICES, ProvisionConfig, UnitType, load_provision_config
from mdma_provisioner.errors import ConfigError
from mdma_provisioner.hardware import load_hardware_snapshot


def base(**over):
    raw = {"hostname": "mdma-909", "unit_type": "mdma-909", "payload": "/srv/mdma-base.tar"}
    raw.update(over)
    return raw


def test_defaults():
    cfg = ProvisionConfig.from_mapping(base())
    assert cfg.unit_type is UnitType.MDMA_909
    assert cfg.services == DEFAULT_SERVICES
    assert cfg.target_root == "/mnt/mdma"
    assert cfg.drive_prefix == "/dev/nvme"
    assert cfg.ssh_key is None and cfg.wifi is None


@pytest.mark.parametrize("hostname", ["", "-bad", ".bad", "has space", "under_score", "x" * 254])
def test_invalid_hostnames(hostname):
    with pytest.raises(ConfigError):
        ProvisionConfig.from_mapping(base(hostname=hostname))


@pytest.mark.parametrize("hostname", ["mdma-909", "studio.local", "a", "x" * 253])
def test_valid_hostnames(hostname):
    assert ProvisionConfig.from_mapping(base(hostname=hostname)).hostname == hostname


@pytest.mark.parametrize(
    "key, ok",
    [
        ("ssh-ed25519 AAAAC3Nza user@host", True),
        ("ssh-rsa AAAAB3Nza", True),
        ("ecdsa-sha2-nistp256 AAAAE2Vj", True),
        ("ssh-ed25519", False),
        ("ssh-dss AAAAB3Nza", False),
        ("not a key", False),
    ],
)
def test_ssh_keys(key, ok):
    if ok:
        assert ProvisionConfig.from_mapping(base(ssh_key=key)).ssh_key == key
    else:
        with pytest.raises(ConfigError):
            ProvisionConfig.from_mapping(base(ssh_key=key))


def test_unknown_unit_type():
    with pytest.raises(ConfigError, match="mdma-909, mdma-101, mdma-303"):
        ProvisionConfig.from_mapping(base(unit_type="mdma-808"))


def test_payload_required():
    raw = base()
    del raw["payload"]
    with pytest.raises(ConfigError, match="payload"):
        ProvisionConfig.from_mapping(raw)


def test_wifi_validation():
    cfg = ProvisionConfig.from_mapping(base(wifi={"ssid": "studio", "password": "correct horse"}))
    assert cfg.wifi.ssid == "studio"
    with pytest.raises(ConfigError, match="8-63"):
        ProvisionConfig.from_mapping(base(wifi={"ssid": "studio", "password": "short"}))
    with pytest.raises(ConfigError, match="quotes"):
        ProvisionConfig.from_mapping(base(wifi={"ssid": 'st"udio', "password": "correct horse"}))


def test_load_yaml_config(tmp_path):
    p = tmp_path / "provision.yml"
    p.write_text("hostname: mdma-303\nunit_type: mdma-303\npayload: /srv/base.tar\nservices: [dbus, beacon]\n")
    cfg = load_provision_config(str(p))
    assert cfg.unit_type is UnitType.MDMA_303
    assert cfg.services == ("dbus", "beacon")


def test_load_missing_config(tmp_path):
    with pytest.raises(ConfigError, match="cannot read"):
        load_provision_config(str(tmp_path / "nope.yaml"))


def test_load_hardware_snapshot(tmp_path):
    p = tmp_path / "hw.json"
    p.write_text(
        json.dumps(
            {
                "model": "Raspberry Pi 5",
                "serial": "abc",
                "devices": [{"path": "/dev/nvme0n1", "size_bytes": 512000000000}, {"path": "/dev/sda", "size_bytes": 1, "removable": True}],
            }
        )
    )
    snap = load_hardware_snapshot(str(p))
    assert snap.model == "Raspberry Pi 5"
    assert snap.devices[0].model == "Unknown"
    assert snap.devices[1].removable is True
    assert snap.memory_mb is None


def test_hardware_snapshot_requires_model(tmp_path):
    p = tmp_path / "hw.yaml"
    p.write_text("devices: []\n")
    with pytest.raises(ConfigError, match="model"):
        load_hardware_snapshot(str(p))


@pytest.mark.parametrize("name", ["../../../../tmp/x", "..", ".", "sv/dbus", "-dash", "dbus\n", ""])
def test_invalid_service_names(name):
    with pytest.raises(ConfigError):
        ProvisionConfig.from_mapping(base(services=["dbus", name]))


def test_service_names_allow_templated_units():
    cfg = ProvisionConfig.from_mapping(base(services=["agetty-tty1", "getty@ttyAMA0", "ntpd.local", "snd_daemon"]))
    assert cfg.services == ("agetty-tty1", "getty@ttyAMA0", "ntpd.local", "snd_daemon")


def test_hostname_with_trailing_newline_is_rejected():
    with pytest.raises(ConfigError):
        ProvisionConfig.from_mapping(base(hostname="mdma-909\n"))
