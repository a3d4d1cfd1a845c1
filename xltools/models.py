"""Data models for xltools."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from ipaddress import IPv4Address
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Type, TypeVar, Union

from xltools.constants import MAX_PORT, VNC_BASE_PORT
from xltools.exceptions import ConfigError, MissingRequiredField
from xltools.utils import normalize_mac

E = TypeVar("E", bound=Enum)


class GuestType(Enum):
    PV = "pv"
    PVH = "pvh"
    HVM = "hvm"


class EventAction(Enum):
    DESTROY = "destroy"
    RESTART = "restart"
    RENAME_RESTART = "rename-restart"
    PRESERVE = "preserve"
    COREDUMP_DESTROY = "coredump-destroy"
    COREDUMP_RESTART = "coredump-restart"
    SOFT_RESET = "soft-reset"


class DiskFormat(Enum):
    RAW = "raw"
    QCOW = "qcow"
    QCOW2 = "qcow2"
    VHD = "vhd"
    QED = "qed"


class DiskAccess(Enum):
    RW = "rw"
    RO = "ro"


class VdevKind(Enum):
    XVD = "xvd"
    HD = "hd"
    SD = "sd"


class VifType(Enum):
    IOEMU = "ioemu"
    VIF = "vif"


class VifModel(Enum):
    RTL8139 = "rtl8139"
    E1000 = "e1000"


class VgaDevice(Enum):
    NONE = "none"
    STDVGA = "stdvga"
    CIRRUS = "cirrus"
    QXL = "qxl"


class DomainFlag(Enum):
    RUNNING = "running"
    BLOCKED = "blocked"
    PAUSED = "paused"
    SHUTDOWN = "shutdown"
    CRASHED = "crashed"
    DYING = "dying"


def coerce_enum(enum_cls: Type[E], value: Any, field_name: str) -> E:
    """Accept an enum member, its token, or its member name."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        token = value.strip()
        for member in enum_cls:
            if token.lower() == member.value or token.upper().replace("-", "_") == member.name:
                return member
    choices = ", ".join(member.value for member in enum_cls)
    raise ConfigError(f"Invalid {field_name} '{value}'. Expected one of: {choices}")


def coerce_ipv4(value: Any, field_name: str) -> IPv4Address:
    if isinstance(value, IPv4Address):
        return value
    try:
        return IPv4Address(str(value).strip())
    except ValueError:
        raise ConfigError(f"Invalid IPv4 address for {field_name}: '{value}'")


def coerce_int(value: Any, field_name: str, min_val: int = 0, max_val: Optional[int] = None) -> int:
    """Accept an int or a decimal string within bounds; bools are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ConfigError(f"{field_name} must be an integer, got {value!r}")
    try:
        number = int(value)
    except ValueError:
        raise ConfigError(f"{field_name} must be an integer, got {value!r}")
    if number < min_val:
        raise ConfigError(f"{field_name} must be >= {min_val} (got {number})")
    if max_val is not None and number > max_val:
        raise ConfigError(f"{field_name} must be <= {max_val} (got {number})")
    return number


def _set(obj: Any, name: str, value: Any) -> None:
    object.__setattr__(obj, name, value)


# ---------------------------------------------------------------------------
# Devices
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Vdev:
    """Guest visible device name, e.g. ``xvda`` or ``hdc``."""

    kind: VdevKind = VdevKind.XVD
    id: str = "a"

    @classmethod
    def xvd(cls, id: str) -> "Vdev":
        return cls(VdevKind.XVD, id)

    @classmethod
    def hd(cls, id: str) -> "Vdev":
        return cls(VdevKind.HD, id)

    @classmethod
    def sd(cls, id: str) -> "Vdev":
        return cls(VdevKind.SD, id)

    @classmethod
    def parse(cls, raw: str) -> "Vdev":
        name = raw.strip().lower()
        for kind in VdevKind:
            if name.startswith(kind.value) and len(name) > len(kind.value):
                return cls(kind, name[len(kind.value):])
        raise ConfigError(f"Invalid vdev '{raw}'. Expected xvdX, hdX or sdX")

    def __post_init__(self) -> None:
        _set(self, "kind", coerce_enum(VdevKind, self.kind, "vdev kind"))
        if not self.id:
            raise ConfigError("vdev id must not be empty")


@dataclass(frozen=True)
class DiskSpec:
    target: Path
    format: DiskFormat = DiskFormat.RAW
    vdev: Vdev = field(default_factory=Vdev)
    access: DiskAccess = DiskAccess.RW
    is_cdrom: bool = False
    translator_script: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.target is None or str(self.target) == "":
            raise MissingRequiredField("disk.target")
        _set(self, "target", Path(self.target))
        _set(self, "format", coerce_enum(DiskFormat, self.format, "disk format"))
        if isinstance(self.vdev, str):
            _set(self, "vdev", Vdev.parse(self.vdev))
        _set(self, "access", coerce_enum(DiskAccess, self.access, "disk access"))
        _set(self, "is_cdrom", bool(self.is_cdrom))
        if self.translator_script is not None:
            _set(self, "translator_script", Path(self.translator_script))


@dataclass(frozen=True)
class NicSpec:
    mac: Optional[str] = None
    bridge: Optional[str] = None
    gateway_dev: Optional[str] = None
    type: Optional[VifType] = None
    # A VifModel member, or any other emulated model name accepted by QEMU
    model: Optional[Union[VifModel, str]] = None
    vif_name: Optional[str] = None
    script: Optional[Path] = None
    ip: Optional[IPv4Address] = None

    def __post_init__(self) -> None:
        if self.mac is not None:
            _set(self, "mac", normalize_mac(self.mac))
        if self.type is not None:
            _set(self, "type", coerce_enum(VifType, self.type, "vif type"))
        if isinstance(self.model, str):
            known = {member.value: member for member in VifModel}
            _set(self, "model", known.get(self.model.strip().lower(), self.model.strip()))
        if self.script is not None:
            _set(self, "script", Path(self.script))
        if self.ip is not None:
            _set(self, "ip", coerce_ipv4(self.ip, "vif ip"))


# ---------------------------------------------------------------------------
# Serial backends
# ---------------------------------------------------------------------------

RemoteHost = Union[str, IPv4Address]


@dataclass(frozen=True)
class VirtualConsole:
    geometry: Optional[Tuple[int, int]] = None


@dataclass(frozen=True)
class Pty:
    pass


@dataclass(frozen=True)
class NoSerial:
    pass


@dataclass(frozen=True)
class NullSerial:
    pass


@dataclass(frozen=True)
class Chardev:
    name: str


@dataclass(frozen=True)
class HostDevice:
    path: str


@dataclass(frozen=True)
class ParallelPort:
    index: int


@dataclass(frozen=True)
class FileSerial:
    path: str


@dataclass(frozen=True)
class Stdio:
    pass


@dataclass(frozen=True)
class Pipe:
    path: str


@dataclass(frozen=True)
class ComPort:
    index: int


@dataclass(frozen=True)
class UdpSerial:
    remote_port: int
    remote_host: Optional[RemoteHost] = None
    src_ip: Optional[IPv4Address] = None
    src_port: Optional[int] = None


@dataclass(frozen=True)
class TcpSerial:
    remote_port: int
    remote_host: Optional[RemoteHost] = None
    server: bool = False
    wait: bool = False
    nodelay: bool = False
    reconnect: Optional[int] = None


@dataclass(frozen=True)
class TelnetSerial:
    remote_host: RemoteHost
    remote_port: int
    server: bool = False
    wait: bool = False
    nodelay: bool = False


@dataclass(frozen=True)
class WebsocketSerial:
    remote_host: RemoteHost
    remote_port: int
    wait: bool = False
    nodelay: bool = False


@dataclass(frozen=True)
class UnixSerial:
    path: str
    server: bool = False
    wait: bool = False
    reconnect: Optional[int] = None


@dataclass(frozen=True)
class Monitor:
    path: str


@dataclass(frozen=True)
class Braille:
    pass


@dataclass(frozen=True)
class MsMouse:
    pass


SerialSpec = Union[
    VirtualConsole,
    Pty,
    NoSerial,
    NullSerial,
    Chardev,
    HostDevice,
    ParallelPort,
    FileSerial,
    Stdio,
    Pipe,
    ComPort,
    UdpSerial,
    TcpSerial,
    TelnetSerial,
    WebsocketSerial,
    UnixSerial,
    Monitor,
    Braille,
    MsMouse,
]

SERIAL_TYPES = SerialSpec.__args__  # type: ignore[attr-defined]

# Parameterless backends addressable by their xl token, used by YAML presets.
SIMPLE_SERIALS: Dict[str, SerialSpec] = {
    "vc": VirtualConsole(),
    "pty": Pty(),
    "none": NoSerial(),
    "null": NullSerial(),
    "stdio": Stdio(),
    "braille": Braille(),
    "msmouse": MsMouse(),
}


# ---------------------------------------------------------------------------
# Domain configuration
# ---------------------------------------------------------------------------


_INT_FIELDS = {
    "vcpus": 1,
    "max_vcpus": 1,
    "cpu_weight": 1,
    "cap": 0,
    "memory_mb": 1,
    "max_memory_mb": 1,
    "video_ram_mb": 1,
}


@dataclass(frozen=True)
class VmConfig:
    """Immutable description of a domain, consumed once by ``xl create``."""

    name: str
    guest_type: GuestType = GuestType.HVM
    # Scheduling
    pool: Optional[str] = None
    vcpus: Optional[int] = None
    max_vcpus: Optional[int] = None
    cpu_affinity: Optional[str] = None
    cpu_affinity_soft: Optional[str] = None
    cpu_weight: Optional[int] = None
    cap: Optional[int] = None
    # Memory
    memory_mb: Optional[int] = None
    max_memory_mb: Optional[int] = None
    vnuma: Optional[Tuple[Tuple[str, ...], ...]] = None
    # Lifecycle policy
    on_poweroff: Optional[EventAction] = None
    on_reboot: Optional[EventAction] = None
    on_watchdog: Optional[EventAction] = None
    on_crash: Optional[EventAction] = None
    on_soft_reset: Optional[EventAction] = None
    # Direct kernel boot
    kernel: Optional[Path] = None
    ramdisk: Optional[Path] = None
    cmdline: Optional[str] = None
    root: Optional[str] = None
    extra: Optional[str] = None
    # Devices
    disks: Tuple[DiskSpec, ...] = ()
    nics: Tuple[NicSpec, ...] = ()
    usb_devices: Tuple[str, ...] = ()
    serial: Optional[SerialSpec] = None
    vga: Optional[VgaDevice] = None
    video_ram_mb: Optional[int] = None
    vnc: Optional[bool] = None
    # (address, VNC display number); the server listens on 5900 + display
    vnc_listen: Optional[Tuple[IPv4Address, int]] = None

    def __post_init__(self) -> None:
        if not self.name or not str(self.name).strip():
            raise MissingRequiredField("name")
        _set(self, "guest_type", coerce_enum(GuestType, self.guest_type, "guest type"))
        for int_field, min_val in _INT_FIELDS.items():
            value = getattr(self, int_field)
            if value is not None:
                _set(self, int_field, coerce_int(value, int_field, min_val))
        for action in ("on_poweroff", "on_reboot", "on_watchdog", "on_crash", "on_soft_reset"):
            value = getattr(self, action)
            if value is not None:
                _set(self, action, coerce_enum(EventAction, value, action))
        for path_field in ("kernel", "ramdisk"):
            value = getattr(self, path_field)
            if value is not None:
                _set(self, path_field, Path(value))
        if self.vnuma is not None:
            _set(self, "vnuma", tuple(tuple(str(item) for item in node) for node in self.vnuma))
        _set(self, "disks", tuple(self.disks))
        _set(self, "nics", tuple(self.nics))
        _set(self, "usb_devices", tuple(self.usb_devices))
        for disk in self.disks:
            if not isinstance(disk, DiskSpec):
                raise ConfigError(f"Expected DiskSpec in disks, got {type(disk).__name__}")
        for nic in self.nics:
            if not isinstance(nic, NicSpec):
                raise ConfigError(f"Expected NicSpec in nics, got {type(nic).__name__}")
        if self.serial is not None and not isinstance(self.serial, SERIAL_TYPES):
            raise ConfigError(f"Unsupported serial backend {self.serial!r}")
        if self.vga is not None:
            _set(self, "vga", coerce_enum(VgaDevice, self.vga, "vga"))
        if self.vnc is not None:
            _set(self, "vnc", bool(self.vnc))
        if self.vnc_listen is not None:
            try:
                address, display = self.vnc_listen
            except (TypeError, ValueError):
                raise ConfigError(f"vnc_listen must be an (address, display) pair, got {self.vnc_listen!r}")
            display = coerce_int(display, "vnc_listen display", max_val=MAX_PORT - VNC_BASE_PORT)
            _set(self, "vnc_listen", (coerce_ipv4(address, "vnc_listen"), display))

    @classmethod
    def builder(cls, name: Optional[str] = None) -> "VmConfigBuilder":
        return VmConfigBuilder(name)


class VmConfigBuilder:
    """Accumulates VmConfig fields; nothing is validated until ``build``."""

    def __init__(self, name: Optional[str] = None) -> None:
        self._fields: Dict[str, Any] = {}
        self._disks: List[DiskSpec] = []
        self._nics: List[NicSpec] = []
        self._usb_devices: List[str] = []
        if name is not None:
            self._fields["name"] = name

    def set(self, **fields: Any) -> "VmConfigBuilder":
        known = {f.name for f in dataclasses.fields(VmConfig)}
        unknown = sorted(set(fields) - known)
        if unknown:
            raise ConfigError(f"Unknown VM configuration field(s): {', '.join(unknown)}")
        for key, value in fields.items():
            if key == "disks":
                self._disks = list(value)
            elif key == "nics":
                self._nics = list(value)
            elif key == "usb_devices":
                self._usb_devices = list(value)
            else:
                self._fields[key] = value
        return self

    def name(self, name: str) -> "VmConfigBuilder":
        return self.set(name=name)

    def guest_type(self, guest_type: GuestType) -> "VmConfigBuilder":
        return self.set(guest_type=guest_type)

    def add_disk(self, disk: DiskSpec) -> "VmConfigBuilder":
        self._disks.append(disk)
        return self

    def add_nic(self, nic: NicSpec) -> "VmConfigBuilder":
        self._nics.append(nic)
        return self

    def add_usb_device(self, device: str) -> "VmConfigBuilder":
        self._usb_devices.append(device)
        return self

    def build(self) -> VmConfig:
        if not self._fields.get("name"):
            raise MissingRequiredField("name")
        return VmConfig(
            disks=tuple(self._disks),
            nics=tuple(self._nics),
            usb_devices=tuple(self._usb_devices),
            **self._fields,
        )


# ---------------------------------------------------------------------------
# Observed state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DomainState:
    name: str
    id: int
    memory_mb: int
    vcpu_count: int
    flags: FrozenSet[DomainFlag]
    cpu_time_seconds: float


@dataclass(frozen=True)
class NetworkAttachment:
    index: int
    backend_id: int
    mac: str
    handle: int
    state: int
    event_channel: int
    tx_ring_ref: int
    rx_ring_ref: int
    backend_store_path: str


@dataclass(frozen=True)
class NeighborEntry:
    ip: IPv4Address
    device: str
    link_addr: Optional[str]
    state: str
