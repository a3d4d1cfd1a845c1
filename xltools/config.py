"""Configuration loading: environment settings and YAML presets."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from xltools.constants import (
    DEFAULT_PRESETS_PATH,
    DEFAULT_RESOLVE_TIMEOUT,
    DEFAULT_VNC_PORT_START,
    MAX_PORT,
)
from xltools.exceptions import ConfigError
from xltools.models import (
    SIMPLE_SERIALS,
    Chardev,
    ComPort,
    DiskSpec,
    FileSerial,
    HostDevice,
    Monitor,
    NicSpec,
    ParallelPort,
    Pipe,
    SerialSpec,
    TcpSerial,
    TelnetSerial,
    UdpSerial,
    UnixSerial,
    VirtualConsole,
    VmConfig,
    WebsocketSerial,
)
from xltools.utils import deterministic_mac, get_env, get_env_bool, parse_int_env, random_mac

SERIAL_KINDS = {
    "vc": VirtualConsole,
    "chardev": Chardev,
    "dev": HostDevice,
    "parport": ParallelPort,
    "file": FileSerial,
    "pipe": Pipe,
    "com": ComPort,
    "udp": UdpSerial,
    "tcp": TcpSerial,
    "telnet": TelnetSerial,
    "websocket": WebsocketSerial,
    "unix": UnixSerial,
    "mon": Monitor,
}

# Keys of a preset that are not plain VmConfig fields.
_PRESET_SPECIAL_KEYS = {"name", "disks", "nics", "serial", "vnc_listen", "description"}


@dataclass
class Settings:
    resolve_timeout: int
    vnc_port_start: int
    presets_path: Path
    verbose: bool


def parse_env() -> Settings:
    presets_raw = get_env("PRESETS_PATH")
    return Settings(
        resolve_timeout=parse_int_env("RESOLVE_TIMEOUT", str(DEFAULT_RESOLVE_TIMEOUT)),
        vnc_port_start=parse_int_env("VNC_PORT_START", str(DEFAULT_VNC_PORT_START), max_val=MAX_PORT),
        presets_path=Path(presets_raw) if presets_raw else DEFAULT_PRESETS_PATH,
        verbose=get_env_bool("LOG_VERBOSE", False),
    )


def load_presets(config_path: Optional[Path] = None) -> Dict[str, Dict[str, Any]]:
    if config_path is None:
        config_path = DEFAULT_PRESETS_PATH
    if not config_path.exists():
        raise ConfigError(f"Preset config missing: {config_path}")
    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Preset config {config_path} contains invalid YAML: {exc}")
    presets = data.get("presets", {}) if isinstance(data, dict) else {}
    if not isinstance(presets, dict):
        raise ConfigError(f"'presets' in {config_path} must be a mapping")
    return presets


def load_preset(preset: str, config_path: Optional[Path] = None) -> Dict[str, Any]:
    presets = load_presets(config_path)
    if preset not in presets:
        available = "\n    ".join(sorted(presets)) or "(none)"
        raise ConfigError(
            f"Unknown preset '{preset}'.\n"
            f"  Available presets:\n"
            f"    {available}\n"
            f"  Use list-presets to see details."
        )
    entry = presets[preset]
    if not isinstance(entry, dict):
        raise ConfigError(f"Preset '{preset}' must be a mapping")
    return entry


def parse_serial(raw: Any) -> SerialSpec:
    if isinstance(raw, str):
        token = raw.strip().lower()
        if token not in SIMPLE_SERIALS:
            raise ConfigError(f"Unknown serial backend '{raw}'")
        return SIMPLE_SERIALS[token]
    if not isinstance(raw, dict) or "type" not in raw:
        raise ConfigError(f"Serial backend must be a name or a mapping with 'type', got {raw!r}")
    params = dict(raw)
    kind = str(params.pop("type")).lower()
    if kind in SIMPLE_SERIALS and not params:
        return SIMPLE_SERIALS[kind]
    serial_cls = SERIAL_KINDS.get(kind)
    if serial_cls is None:
        raise ConfigError(f"Unknown serial backend '{kind}'")
    if "geometry" in params:
        params["geometry"] = tuple(params["geometry"])
    try:
        return serial_cls(**params)
    except TypeError as exc:
        raise ConfigError(f"Invalid parameters for serial backend '{kind}': {exc}")


def _parse_disk(raw: Dict[str, Any]) -> DiskSpec:
    params = dict(raw)
    if "cdrom" in params:
        params["is_cdrom"] = params.pop("cdrom")
    if "script" in params:
        params["translator_script"] = params.pop("script")
    try:
        return DiskSpec(**params)
    except TypeError as exc:
        raise ConfigError(f"Invalid disk entry {raw!r}: {exc}")


def _parse_nic(raw: Dict[str, Any], domain_name: str, index: int) -> NicSpec:
    params = dict(raw)
    mac = str(params.get("mac", "")).lower()
    if mac == "auto":
        params["mac"] = deterministic_mac(f"{domain_name}-{index}")
    elif mac == "random":
        params["mac"] = random_mac()
    try:
        return NicSpec(**params)
    except TypeError as exc:
        raise ConfigError(f"Invalid vif entry {raw!r}: {exc}")


def config_from_preset(entry: Dict[str, Any], domain_name: str, vnc_display: Optional[int] = None) -> VmConfig:
    """Build a VmConfig for ``domain_name`` from a preset mapping.

    ``vnc_listen`` is ``ADDRESS[:DISPLAY]`` as in xl.cfg; without a display
    number ``vnc_display`` is used.
    """
    builder = VmConfig.builder(domain_name)
    builder.set(**{key: value for key, value in entry.items() if key not in _PRESET_SPECIAL_KEYS})
    for disk in entry.get("disks") or []:
        builder.add_disk(_parse_disk(disk))
    nics: List[Dict[str, Any]] = entry.get("nics") or []
    for index, nic in enumerate(nics):
        builder.add_nic(_parse_nic(nic, domain_name, index))
    if entry.get("serial") is not None:
        builder.set(serial=parse_serial(entry["serial"]))
    listen = entry.get("vnc_listen")
    if listen is not None:
        if isinstance(listen, str) and ":" in listen:
            address, display = listen.rsplit(":", 1)
            if not display.isdigit():
                raise ConfigError(f"Invalid vnc_listen display in '{listen}'")
            builder.set(vnc_listen=(address, int(display)))
        elif vnc_display is None:
            raise ConfigError("vnc_listen has no display and no free display was allocated")
        else:
            builder.set(vnc_listen=(listen, vnc_display))
    return builder.build()
