"""xl.cfg(5) rendering for xltools.

Every piece of text handed to ``xl create`` is produced here. Top-level keys
are emitted in alphabetical order so equal configurations always render to
identical text; device sub-strings follow the key order documented in
xl-disk-configuration(5) and xl-network-configuration(5).
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

from xltools.models import (
    Braille,
    Chardev,
    ComPort,
    DiskSpec,
    FileSerial,
    HostDevice,
    Monitor,
    MsMouse,
    NicSpec,
    NoSerial,
    NullSerial,
    ParallelPort,
    Pipe,
    Pty,
    SerialSpec,
    Stdio,
    TcpSerial,
    TelnetSerial,
    UdpSerial,
    UnixSerial,
    VifModel,
    VirtualConsole,
    VmConfig,
    WebsocketSerial,
)


def _quote(value: Any) -> str:
    """Encode a scalar or list the way xl.cfg expects (JSON compatible)."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (list, tuple)):
        return json.dumps([_plain(item) for item in value], separators=(",", ":"))
    return json.dumps(str(value))


def _plain(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return str(value)


def _flag(name: str, enabled: bool) -> str:
    return f",{name}=on" if enabled else ""


def render_disk(disk: DiskSpec) -> str:
    """Render one disk entry; ``target=`` comes last since paths may hold commas."""
    parts = [
        f"format={disk.format.value}",
        f"vdev={disk.vdev.kind.value}{disk.vdev.id}",
        f"access={disk.access.value}",
    ]
    if disk.is_cdrom:
        parts.append("devtype=cdrom")
    if disk.translator_script is not None:
        parts.append(f"script={disk.translator_script}")
    parts.append(f"target={disk.target}")
    return ",".join(parts)


def render_nic(nic: NicSpec) -> str:
    options: Dict[str, str] = {}
    if nic.mac is not None:
        options["mac"] = nic.mac
    if nic.bridge is not None:
        options["bridge"] = nic.bridge
    if nic.gateway_dev is not None:
        options["gatewaydev"] = nic.gateway_dev
    if nic.type is not None:
        options["type"] = nic.type.value
    if nic.model is not None:
        options["model"] = nic.model.value if isinstance(nic.model, VifModel) else nic.model
    if nic.vif_name is not None:
        options["vifname"] = nic.vif_name
    if nic.script is not None:
        options["script"] = str(nic.script)
    if nic.ip is not None:
        options["ip"] = str(nic.ip)
    return ",".join(f"{key}={options[key]}" for key in sorted(options))


def render_serial(serial: SerialSpec) -> str:
    if isinstance(serial, VirtualConsole):
        if serial.geometry is None:
            return "vc"
        width, height = serial.geometry
        return f"vc:{width}:{height}"
    if isinstance(serial, Pty):
        return "pty"
    if isinstance(serial, NoSerial):
        return "none"
    if isinstance(serial, NullSerial):
        return "null"
    if isinstance(serial, Chardev):
        return f"chardev:{serial.name}"
    if isinstance(serial, HostDevice):
        return f"dev:{serial.path}"
    if isinstance(serial, ParallelPort):
        return f"parport:{serial.index}"
    if isinstance(serial, FileSerial):
        return f"file:{serial.path}"
    if isinstance(serial, Stdio):
        return "stdio"
    if isinstance(serial, Pipe):
        return f"pipe:{serial.path}"
    if isinstance(serial, ComPort):
        return f"com:{serial.index}"
    if isinstance(serial, UdpSerial):
        host = "" if serial.remote_host is None else str(serial.remote_host)
        source = ""
        if serial.src_port is not None:
            src_ip = "" if serial.src_ip is None else str(serial.src_ip)
            source = f"@{src_ip}:{serial.src_port}"
        return f"udp:{host}:{serial.remote_port}{source}"
    if isinstance(serial, TcpSerial):
        host = "" if serial.remote_host is None else str(serial.remote_host)
        reconnect = "" if serial.reconnect is None else f",reconnect={serial.reconnect}"
        return (
            f"tcp:{host}:{serial.remote_port}"
            f"{_flag('server', serial.server)}{_flag('wait', serial.wait)}"
            f"{_flag('nodelay', serial.nodelay)}{reconnect}"
        )
    if isinstance(serial, TelnetSerial):
        return (
            f"telnet:{serial.remote_host}:{serial.remote_port}"
            f"{_flag('server', serial.server)}{_flag('wait', serial.wait)}"
            f"{_flag('nodelay', serial.nodelay)}"
        )
    if isinstance(serial, WebsocketSerial):
        return (
            f"websocket:{serial.remote_host}:{serial.remote_port},server=on"
            f"{_flag('wait', serial.wait)}{_flag('nodelay', serial.nodelay)}"
        )
    if isinstance(serial, UnixSerial):
        reconnect = "" if serial.reconnect is None else f",reconnect={serial.reconnect}"
        return f"unix:{serial.path}{_flag('server', serial.server)}{_flag('wait', serial.wait)}{reconnect}"
    if isinstance(serial, Monitor):
        return f"mon:{serial.path}"
    if isinstance(serial, Braille):
        return "braille"
    if isinstance(serial, MsMouse):
        return "msmouse"
    raise TypeError(f"Unhandled serial backend: {serial!r}")


def config_options(cfg: VmConfig) -> Dict[str, str]:
    """Map every set field of ``cfg`` to its xl key and encoded value."""
    options: Dict[str, str] = {
        "name": _quote(cfg.name),
        "type": _quote(cfg.guest_type.value),
    }
    scalars = {
        "pool": cfg.pool,
        "vcpus": cfg.vcpus,
        "maxvcpus": cfg.max_vcpus,
        "cpus": cfg.cpu_affinity,
        "cpus_soft": cfg.cpu_affinity_soft,
        "cpu_weight": cfg.cpu_weight,
        "cap": cfg.cap,
        "memory": cfg.memory_mb,
        "maxmem": cfg.max_memory_mb,
        "kernel": cfg.kernel,
        "ramdisk": cfg.ramdisk,
        "cmdline": cfg.cmdline,
        "root": cfg.root,
        "extra": cfg.extra,
        "videoram": cfg.video_ram_mb,
        "vnc": cfg.vnc,
    }
    for key, value in scalars.items():
        if value is not None:
            options[key] = _quote(value)

    actions = {
        "on_poweroff": cfg.on_poweroff,
        "on_reboot": cfg.on_reboot,
        "on_watchdog": cfg.on_watchdog,
        "on_crash": cfg.on_crash,
        "on_soft_reset": cfg.on_soft_reset,
    }
    for key, action in actions.items():
        if action is not None:
            options[key] = _quote(action.value)

    if cfg.vnuma is not None:
        options["vnuma"] = _quote(cfg.vnuma)
    if cfg.disks:
        options["disk"] = _quote([render_disk(disk) for disk in cfg.disks])
    if cfg.nics:
        options["vif"] = _quote([render_nic(nic) for nic in cfg.nics])
    if cfg.usb_devices:
        options["usbdevice"] = _quote(list(cfg.usb_devices))
    if cfg.vga is not None:
        options["vga"] = _quote(cfg.vga.value)
    if cfg.vnc_listen is not None:
        address, port = cfg.vnc_listen
        options["vnclisten"] = _quote(f"{address}:{port}")
    if cfg.serial is not None:
        options["serial"] = _quote(render_serial(cfg.serial))
    return options


def render_config(cfg: VmConfig) -> str:
    options = config_options(cfg)
    entries: List[str] = [f"{key} = {options[key]}" for key in sorted(options)]
    return "; ".join(entries)
