"""Wrappers around the ``xl`` toolstack CLI.

Each function renders its arguments, runs ``xl`` once and parses the output.
Failures surface as ExecutionError; nothing here retries.
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import List, Optional, Set, Union

from xltools import constants
from xltools.models import DomainState, NetworkAttachment, VmConfig
from xltools.parsers import parse_domid, parse_domname, parse_list, parse_network_list
from xltools.utils import log, run
from xltools.xlcfg import render_config

ALL_DOMAINS = "all"

ShutdownTarget = Union[int, str]


def _xl(*args: str) -> str:
    cmd = [constants.XL_BIN, *args]
    return run(cmd).stdout or ""


def create(cfg: VmConfig) -> None:
    """Create a domain from ``cfg``.

    xl insists on a config file argument, so an empty one is passed and the
    rendered configuration follows as a config-line override.
    """
    rendered = render_config(cfg)
    log("DEBUG", f"xl config: {rendered}")
    with tempfile.NamedTemporaryFile("w", prefix="xltools-", suffix=".cfg") as empty_cfg:
        _xl("create", empty_cfg.name, rendered)
    log("SUCCESS", f"Created domain {cfg.name}")


def list_domains() -> List[DomainState]:
    return parse_list(_xl("list"))


def destroy(domid: int) -> None:
    _xl("destroy", str(domid))


def rename(domid: int, name: str) -> None:
    _xl("rename", str(domid), name)


def dump_core(domid: int, filename: Union[str, Path]) -> None:
    _xl("dump-core", str(domid), str(filename))


def pause(domid: int) -> None:
    _xl("pause", str(domid))


def unpause(domid: int) -> None:
    _xl("unpause", str(domid))


def reboot(domid: int, force: bool = False) -> None:
    args = ["reboot"]
    if force:
        args.append("-F")
    args.append(str(domid))
    _xl(*args)


def save(
    domid: int,
    checkpoint_file: Union[str, Path],
    stay_running: bool = False,
    pause: bool = False,
    config_file: Optional[Union[str, Path]] = None,
) -> None:
    args = ["save"]
    if stay_running:
        args.append("-c")
    if pause:
        args.append("-p")
    args.extend([str(domid), str(checkpoint_file)])
    if config_file is not None:
        args.append(str(config_file))
    _xl(*args)


def restore(
    checkpoint_file: Union[str, Path],
    pause: bool = False,
    config_file: Optional[Union[str, Path]] = None,
) -> None:
    args = ["restore"]
    if pause:
        args.append("-p")
    if config_file is not None:
        args.append(str(config_file))
    args.append(str(checkpoint_file))
    _xl(*args)


def shutdown(target: ShutdownTarget, wait: bool = False, force: bool = False) -> None:
    """Shut down one domain by id, or every domain when ``target`` is ALL_DOMAINS."""
    args = ["shutdown"]
    if wait:
        args.append("-w")
    if force:
        args.append("-F")
    args.append("-a" if target == ALL_DOMAINS else str(target))
    _xl(*args)


def domid(name: str) -> int:
    return parse_domid(_xl("domid", name))


def domname(domid: int) -> str:
    return parse_domname(_xl("domname", str(domid)))


def network_list(domid: int) -> List[NetworkAttachment]:
    return parse_network_list(_xl("network-list", str(domid)))


def dom_macs(name: str) -> Set[str]:
    """Return the MAC addresses of every virtual NIC attached to domain ``name``."""
    return {attachment.mac for attachment in network_list(domid(name))}
