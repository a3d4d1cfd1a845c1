"""Domain name and local port allocation."""

from __future__ import annotations

import socket
from typing import Iterable, Optional

from xltools.constants import DEFAULT_VNC_PORT_START, MAX_PORT, VNC_BASE_PORT
from xltools.exceptions import ConfigError, ResourceExhaustionError
from xltools.utils import log
from xltools.xl import list_domains


def unique_name(prefix: str, domains: Optional[Iterable[str]] = None) -> str:
    """Return ``prefix`` followed by one more than the highest numbered running domain.

    Running domains are queried on every call unless ``domains`` is given.
    Names whose remainder after ``prefix`` is not a number are ignored.
    """
    if domains is None:
        domains = [state.name for state in list_domains()]
    suffixes = []
    for name in domains:
        if not name.startswith(prefix):
            continue
        remainder = name[len(prefix):]
        if remainder.isdigit():
            suffixes.append(int(remainder))
    return f"{prefix}{max(suffixes, default=0) + 1}"


def free_local_port(start: int = DEFAULT_VNC_PORT_START, host: str = "127.0.0.1") -> int:
    """Return the first port at or above ``start`` that can be bound on ``host``.

    The probe socket is closed before returning, so another process may
    still take the port before the caller uses it.
    """
    if not 1 <= start <= MAX_PORT:
        raise ConfigError(f"Port must be between 1 and {MAX_PORT} (got {start})")
    for port in range(start, MAX_PORT + 1):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
            try:
                probe.bind((host, port))
                probe.listen(1)
            except OSError:
                continue
        log("DEBUG", f"Local port {port} is free")
        return port
    raise ResourceExhaustionError(start, MAX_PORT)


def free_vnc_display(start: int = DEFAULT_VNC_PORT_START, host: str = "127.0.0.1") -> int:
    """Return the VNC display number of the first free port at or above ``start``.

    xl's ``vnclisten`` takes a display number; display N listens on 5900 + N.
    """
    if start < VNC_BASE_PORT:
        raise ConfigError(f"VNC port search must start at or above {VNC_BASE_PORT} (got {start})")
    return free_local_port(start, host) - VNC_BASE_PORT
