"""Preset machine definitions and their bring-up."""

from __future__ import annotations

from ipaddress import IPv4Address
from pathlib import Path
from typing import Optional

from xltools import xl
from xltools.allocators import free_vnc_display, unique_name
from xltools.config import config_from_preset, load_preset
from xltools.constants import DEFAULT_VNC_PORT_START
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
from xltools.utils import log, new_img

WINDEV_VMNAME = "windev"
WINDEV_DISK_GB = 40


def windows_dev_config(
    name: str,
    auto_iso: Path,
    img: Path,
    vnc_display: int,
) -> VmConfig:
    """A Windows development guest: installer ISO on hdc, system disk on xvda."""
    return (
        VmConfig.builder(name)
        .set(
            guest_type=GuestType.HVM,
            memory_mb=4096,
            vcpus=2,
            vga=VgaDevice.STDVGA,
            video_ram_mb=32,
            serial=Pty(),
            vnc=True,
            vnc_listen=(IPv4Address("0.0.0.0"), vnc_display),
        )
        .add_nic(NicSpec(bridge="xenbr0"))
        .add_disk(DiskSpec(target=auto_iso, format=DiskFormat.RAW, vdev=Vdev.hd("c"), is_cdrom=True))
        .add_disk(DiskSpec(target=img, format=DiskFormat.RAW, vdev=Vdev.xvd("a")))
        .build()
    )


def windows_dev(auto_iso: Path, img: Path, vnc_port_start: int = DEFAULT_VNC_PORT_START) -> VmConfig:
    """Create the next ``windev<N>`` domain and return the configuration used."""
    name = unique_name(WINDEV_VMNAME)
    new_img(img, WINDEV_DISK_GB)
    cfg = windows_dev_config(name, auto_iso, img, free_vnc_display(vnc_port_start))
    xl.create(cfg)
    return cfg


def preset_config(
    preset: str,
    config_path: Optional[Path] = None,
    vnc_port_start: int = DEFAULT_VNC_PORT_START,
) -> VmConfig:
    """Resolve a YAML preset into a VmConfig with a fresh domain name."""
    entry = load_preset(preset, config_path)
    prefix = str(entry.get("name") or preset)
    listen = entry.get("vnc_listen")
    vnc_display = None
    if listen is not None and not (isinstance(listen, str) and ":" in listen):
        vnc_display = free_vnc_display(vnc_port_start)
    return config_from_preset(entry, unique_name(prefix), vnc_display=vnc_display)


def create_preset(
    preset: str,
    config_path: Optional[Path] = None,
    vnc_port_start: int = DEFAULT_VNC_PORT_START,
) -> VmConfig:
    cfg = preset_config(preset, config_path, vnc_port_start)
    log("INFO", f"Creating domain {cfg.name} from preset '{preset}'")
    xl.create(cfg)
    return cfg
