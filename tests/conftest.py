"""Shared test fixtures: canned xl output and a recording command runner."""

from __future__ import annotations

import subprocess
from ipaddress import IPv4Address
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from xltools.exceptions import ExecutionError
from xltools.models import (
    DiskFormat,
    DiskSpec,
    GuestType,
    NicSpec,
    Pty,
    Vdev,
    VgaDevice,
    VmConfig,
)

XL_LIST_OUTPUT = """\
Name                                        ID   Mem VCPUs\tState\tTime(s)
Domain-0                                     0  4096     8     r-----    1234.5
agent1                                       3  2048     2     r-----      12.5
agent3                                       5  2048     2     -b----       3.0
other7                                       7  1024     1     --p---       0.4
"""

XL_NETWORK_LIST_OUTPUT = """\
Idx BE Mac Addr.         handle state evt-ch   tx-/rx-ring-ref BE-path
0   0  00:16:3e:5a:0b:01 0      4     19      768/769         /local/domain/0/backend/vif/3/0
1   0  00:16:3e:5a:0b:02 1      4     20      1280/1281       /local/domain/0/backend/vif/3/1
"""

IP_NEIGH_OUTPUT = """\
192.168.1.1 dev eth0 lladdr aa:bb:cc:dd:ee:ff router REACHABLE
10.0.0.42 dev xenbr0 lladdr 00:16:3e:5a:0b:01 STALE
10.0.0.9 dev xenbr0 FAILED
fe80::216:3eff:fe5a:b01 dev xenbr0 lladdr 00:16:3e:5a:0b:01 STALE
"""


def completed(stdout: str = "", stderr: str = "", returncode: int = 0) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class FakeRunner:
    """Stand-in for utils.run keyed on the tool subcommand."""

    def __init__(self, outputs: Optional[Dict[str, str]] = None) -> None:
        self.outputs = outputs or {}
        self.failures: Dict[str, ExecutionError] = {}
        self.calls: List[List[str]] = []

    def __call__(self, cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
        self.calls.append(list(cmd))
        key = cmd[1] if len(cmd) > 1 else cmd[0]
        if key in self.failures:
            raise self.failures[key]
        return completed(self.outputs.get(key, ""))


@pytest.fixture
def fake_xl(monkeypatch) -> FakeRunner:
    runner = FakeRunner({"list": XL_LIST_OUTPUT, "network-list": XL_NETWORK_LIST_OUTPUT, "domid": "3\n"})
    monkeypatch.setattr("xltools.xl.run", runner)
    monkeypatch.setattr("xltools.constants.XL_BIN", "xl")
    return runner


@pytest.fixture
def win_agent_config() -> VmConfig:
    disk = DiskSpec(
        target=Path("/test/tmp/disk1.img"),
        format=DiskFormat.RAW,
        vdev=Vdev.xvd("a"),
    )
    cdrom = DiskSpec(
        target=Path("/test/tmp/disk2.iso"),
        format=DiskFormat.RAW,
        vdev=Vdev.hd("c"),
        is_cdrom=True,
    )
    return (
        VmConfig.builder("agent")
        .set(
            guest_type=GuestType.HVM,
            memory_mb=4096,
            vcpus=1,
            usb_devices=["tablet"],
            vga=VgaDevice.STDVGA,
            video_ram_mb=32,
            serial=Pty(),
            vnc=True,
            vnc_listen=(IPv4Address("0.0.0.0"), 3),
        )
        .add_nic(NicSpec(bridge="xenbr0"))
        .add_disk(disk)
        .add_disk(cdrom)
        .build()
    )


_ENV_VARS = [
    "RESOLVE_TIMEOUT",
    "VNC_PORT_START",
    "PRESETS_PATH",
    "LOG_VERBOSE",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Clear every environment variable parse_env() reads."""
    for key in _ENV_VARS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def xl_list_output() -> str:
    return XL_LIST_OUTPUT


@pytest.fixture
def xl_network_list_output() -> str:
    return XL_NETWORK_LIST_OUTPUT


@pytest.fixture
def ip_neigh_output() -> str:
    return IP_NEIGH_OUTPUT
