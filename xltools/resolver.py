"""Resolve a domain's IPv4 address from the host neighbor table."""

from __future__ import annotations

import time
from ipaddress import IPv4Address
from typing import Callable, Iterable, List, Optional

from xltools import constants
from xltools.exceptions import ExecutionError, ResolveTimeoutError, XlToolsError
from xltools.models import NeighborEntry
from xltools.parsers import parse_neighbors
from xltools.utils import log, normalize_mac, run
from xltools.xl import dom_macs


def ip_neighbors() -> List[NeighborEntry]:
    """Return the IPv4 rows of ``ip neighbor show``."""
    result = run([constants.IP_BIN, "neighbor", "show"])
    return parse_neighbors(result.stdout or "")


def match_neighbors(entries: Iterable[NeighborEntry], macs: Iterable[str]) -> Optional[IPv4Address]:
    """Pick the lowest IPv4 among entries whose link address is in ``macs``."""
    wanted = {mac.lower() for mac in macs}
    candidates = [entry.ip for entry in entries if entry.link_addr is not None and entry.link_addr in wanted]
    if not candidates:
        return None
    return min(candidates)


def resolve_ip(
    macs: Iterable[str],
    timeout: float = constants.DEFAULT_RESOLVE_TIMEOUT,
    domain: Optional[str] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> IPv4Address:
    """Poll the neighbor table until one of ``macs`` shows up or ``timeout`` passes.

    The wait between attempts starts at one second and doubles after each
    miss. The last wait is cut short at the deadline so a final lookup runs
    right when the timeout expires.
    """
    wanted = {normalize_mac(mac) for mac in macs}
    label = domain or ", ".join(sorted(wanted))
    start = clock()
    deadline = start + timeout
    backoff = constants.INITIAL_BACKOFF_SECONDS
    attempt = 0
    while True:
        attempt += 1
        try:
            found = match_neighbors(ip_neighbors(), wanted)
        except ExecutionError as exc:
            log("WARN", f"Neighbor table query failed: {exc}")
            found = None
        if found is not None:
            log("SUCCESS", f"Resolved {label} to {found} after {attempt} attempt(s)")
            return found

        now = clock()
        if now >= deadline:
            raise ResolveTimeoutError(domain, timeout, now - start)
        delay = min(backoff, deadline - now)
        log("DEBUG", f"No neighbor entry for {label} yet; retrying in {delay:.1f}s")
        sleep(delay)
        backoff *= 2


def dom_ip(name: str, timeout: float = constants.DEFAULT_RESOLVE_TIMEOUT) -> IPv4Address:
    """Resolve the IPv4 address of the running domain called ``name``."""
    macs = dom_macs(name)
    if not macs:
        raise XlToolsError(f"Domain {name} has no network interfaces")
    log("INFO", f"Looking up IP for {name} ({', '.join(sorted(macs))})")
    return resolve_ip(macs, timeout=timeout, domain=name)
