"""Global constants and tool configuration for xltools."""

from __future__ import annotations

import os
import re
from pathlib import Path

XL_BIN = os.environ.get("XL_BIN", "xl")
IP_BIN = os.environ.get("IP_BIN", "ip")
XENSTORE_LIST_BIN = os.environ.get("XENSTORE_LIST_BIN", "xenstore-list")
XENSTORE_READ_BIN = os.environ.get("XENSTORE_READ_BIN", "xenstore-read")

DEFAULT_PRESETS_PATH = Path(os.environ.get("PRESETS_PATH", "/etc/xltools/presets.yaml"))

TRUTHY = {"1", "true", "yes", "on"}
MAC_ADDRESS_RE = re.compile(r"^[0-9a-f]{2}(:[0-9a-f]{2}){5}$")

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in {"1", "true", "yes", "on"}

DEFAULT_RESOLVE_TIMEOUT = 30
DEFAULT_VNC_PORT_START = 5900
MAX_PORT = 65535
# TCP port of VNC display 0; xl takes display numbers, not ports.
VNC_BASE_PORT = 5900

# Resolver backoff starts here and doubles after every miss.
INITIAL_BACKOFF_SECONDS = 1.0

# `xl list` state column, one character per flag.
DOMAIN_STATE_FLAGS = {
    "r": "running",
    "b": "blocked",
    "p": "paused",
    "s": "shutdown",
    "c": "crashed",
    "d": "dying",
}

XENSTORE_DOMAIN_ROOT = "/local/domain"
XENSTORE_LIBXL_ROOT = "/libxl"

BYTES_PER_GIB = 1024**3
