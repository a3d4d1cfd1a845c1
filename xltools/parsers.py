"""Parsers for the tabular text produced by xl and iproute2.

Each external format has one entry point here. List parsers are best effort:
a row that does not match its grammar is logged and skipped, so one odd
domain never hides the rest of the host.
"""

from __future__ import annotations

from ipaddress import AddressValueError, IPv4Address
from typing import Callable, List, TypeVar

from xltools.constants import DOMAIN_STATE_FLAGS, MAC_ADDRESS_RE
from xltools.exceptions import ParseError
from xltools.models import DomainFlag, DomainState, NeighborEntry, NetworkAttachment
from xltools.utils import log

T = TypeVar("T")


def _int(line: str, value: str, label: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ParseError(line, f"{label} is not an integer: '{value}'")


def _mac(line: str, value: str) -> str:
    mac = value.lower()
    if not MAC_ADDRESS_RE.match(mac):
        raise ParseError(line, f"invalid MAC address '{value}'")
    return mac


def parse_state_flags(line: str, state: str) -> frozenset:
    flags = set()
    for char in state:
        if char == "-":
            continue
        name = DOMAIN_STATE_FLAGS.get(char)
        if name is None:
            raise ParseError(line, f"unknown domain state flag '{char}'")
        flags.add(DomainFlag(name))
    return frozenset(flags)


def parse_list_row(line: str) -> DomainState:
    """Parse one ``xl list`` row: ``name id mem vcpus state time``."""
    parts = line.split()
    if len(parts) < 6:
        raise ParseError(line, f"expected 6 fields, got {len(parts)}")
    name, domid, mem, vcpus, state, cpu_time = parts[:6]
    try:
        seconds = float(cpu_time)
    except ValueError:
        raise ParseError(line, f"time is not a number: '{cpu_time}'")
    return DomainState(
        name=name,
        id=_int(line, domid, "id"),
        memory_mb=_int(line, mem, "mem"),
        vcpu_count=_int(line, vcpus, "vcpus"),
        flags=parse_state_flags(line, state),
        cpu_time_seconds=seconds,
    )


def parse_network_list_row(line: str) -> NetworkAttachment:
    """Parse one ``xl network-list`` row: ``idx be mac handle state evt-ch tx/rx be-path``."""
    parts = line.split()
    if len(parts) < 8:
        raise ParseError(line, f"expected 8 fields, got {len(parts)}")
    idx, backend, mac, handle, state, evt_ch, rings, be_path = parts[:8]
    tx_rx = rings.split("/")
    if len(tx_rx) != 2:
        raise ParseError(line, f"tx/rx must be two integers separated by '/', got '{rings}'")
    return NetworkAttachment(
        index=_int(line, idx, "idx"),
        backend_id=_int(line, backend, "be"),
        mac=_mac(line, mac),
        handle=_int(line, handle, "handle"),
        state=_int(line, state, "state"),
        event_channel=_int(line, evt_ch, "evt-ch"),
        tx_ring_ref=_int(line, tx_rx[0], "tx"),
        rx_ring_ref=_int(line, tx_rx[1], "rx"),
        backend_store_path=be_path,
    )


def parse_neighbor_row(line: str) -> NeighborEntry:
    """Parse one ``ip neighbor show`` row.

    Rows look like ``<ip> dev <dev> [lladdr <mac>] [router] <STATE>``; entries
    in FAILED or INCOMPLETE state carry no link-layer address.
    """
    parts = line.split()
    if len(parts) < 4:
        raise ParseError(line, "too few fields for a neighbor entry")
    try:
        ip = IPv4Address(parts[0])
    except AddressValueError:
        raise ParseError(line, f"not an IPv4 neighbor: '{parts[0]}'")
    try:
        device = parts[parts.index("dev") + 1]
    except (ValueError, IndexError):
        raise ParseError(line, "missing 'dev' field")
    link_addr = None
    if "lladdr" in parts:
        position = parts.index("lladdr") + 1
        if position >= len(parts):
            raise ParseError(line, "missing value after 'lladdr'")
        link_addr = _mac(line, parts[position])
    state = parts[-1]
    if not state.isupper():
        raise ParseError(line, f"missing neighbor state, got '{state}'")
    return NeighborEntry(ip=ip, device=device, link_addr=link_addr, state=state)


def _parse_rows(text: str, parse_row: Callable[[str], T], label: str, skip_header: bool) -> List[T]:
    lines = text.splitlines()
    if skip_header:
        lines = lines[1:]
    rows: List[T] = []
    for line in lines:
        if not line.strip():
            continue
        try:
            rows.append(parse_row(line))
        except ParseError as exc:
            log("WARN", f"Skipping malformed {label} row: {exc}")
    return rows


def parse_list(text: str) -> List[DomainState]:
    return _parse_rows(text, parse_list_row, "xl list", skip_header=True)


def parse_network_list(text: str) -> List[NetworkAttachment]:
    return _parse_rows(text, parse_network_list_row, "xl network-list", skip_header=True)


def parse_neighbors(text: str) -> List[NeighborEntry]:
    entries: List[NeighborEntry] = []
    for line in text.splitlines():
        if not line.strip():
            continue
        try:
            entries.append(parse_neighbor_row(line))
        except ParseError as exc:
            log("DEBUG", f"Ignoring neighbor row: {exc}")
    return entries


def parse_domid(text: str) -> int:
    token = text.strip()
    if not token.isdigit():
        raise ParseError(token, "domid output is not a non-negative integer")
    return int(token)


def parse_domname(text: str) -> str:
    token = text.strip()
    if not token:
        raise ParseError(text, "domname output is empty")
    return token
