"""Xenstore lookups through the xenstore-list / xenstore-read CLI tools."""

from __future__ import annotations

from typing import List, Optional

from xltools import constants
from xltools.exceptions import ExecutionError
from xltools.utils import log, output_lines, run


def xs_list(path: str) -> List[str]:
    return [line.strip() for line in output_lines(run([constants.XENSTORE_LIST_BIN, path]).stdout)]


def xs_read(path: str) -> str:
    return (run([constants.XENSTORE_READ_BIN, path]).stdout or "").strip()


def _try_read(path: str) -> Optional[str]:
    try:
        return xs_read(path)
    except ExecutionError as exc:
        log("ERROR", f"Could not read xenstore path {path}: {exc}")
        return None


def dom_disks(domname: str) -> List[str]:
    """Return the backing ``params`` of every virtual block device of ``domname``."""
    disks: List[str] = []
    for domid in xs_list(constants.XENSTORE_DOMAIN_ROOT):
        name = _try_read(f"{constants.XENSTORE_DOMAIN_ROOT}/{domid}/name")
        if name != domname:
            continue
        log("DEBUG", f"Checking virtual block devices of domain {domid}")
        vbd_root = f"{constants.XENSTORE_LIBXL_ROOT}/{domid}/device/vbd"
        try:
            vbds = xs_list(vbd_root)
        except ExecutionError as exc:
            log("WARN", f"Domain {domid} has no readable block devices: {exc}")
            continue
        for vbd in vbds:
            params = _try_read(f"{vbd_root}/{vbd}/params")
            if params:
                disks.append(params)
    return disks
