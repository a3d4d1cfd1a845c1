"""CLI entry points for xltools."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from xltools import xl
from xltools.allocators import free_local_port, unique_name
from xltools.config import Settings, load_presets, parse_env
from xltools.exceptions import XlToolsError
from xltools.models import DomainState
from xltools.presets import create_preset, preset_config
from xltools.resolver import dom_ip
from xltools.utils import log
from xltools.xenstore import dom_disks
from xltools.xlcfg import render_config


def format_flags(state: DomainState) -> str:
    return ",".join(sorted(flag.value for flag in state.flags)) or "-"


def list_domains() -> None:
    domains = xl.list_domains()
    if not domains:
        log("WARN", "No domains found")
        return
    width = max(len(state.name) for state in domains)
    for state in domains:
        print(
            f"  {state.name:<{width}}  id={state.id} mem={state.memory_mb}M "
            f"vcpus={state.vcpu_count} state={format_flags(state)} time={state.cpu_time_seconds:.1f}s"
        )


def list_presets(config_path: Path) -> None:
    """Print available presets."""
    if not config_path.exists():
        log("ERROR", f"Preset config missing: {config_path}")
        return
    presets = load_presets(config_path)
    if not presets:
        log("WARN", "No presets found")
        return
    max_key = max(len(key) for key in presets)
    for key in sorted(presets):
        info = presets[key] or {}
        description = info.get("description", "")
        prefix = info.get("name", key)
        print(f"  {key:<{max_key}}  prefix={prefix}  {description}".rstrip())


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="xltools", description="Xen domain helpers built on the xl toolstack")
    parser.add_argument("--presets", type=Path, default=None, help="Preset YAML file (default: $PRESETS_PATH)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List running domains")
    sub.add_parser("list-presets", help="List available presets")

    ip = sub.add_parser("ip", help="Print the IPv4 address of a domain")
    ip.add_argument("name")
    ip.add_argument("--timeout", type=int, default=None, help="Seconds to wait (default: $RESOLVE_TIMEOUT)")

    macs = sub.add_parser("macs", help="Print the MAC addresses of a domain")
    macs.add_argument("name")

    disks = sub.add_parser("disks", help="Print the disk files attached to a domain")
    disks.add_argument("name")

    name = sub.add_parser("name", help="Print the next free domain name for a prefix")
    name.add_argument("prefix")

    port = sub.add_parser("port", help="Print the first free local TCP port")
    port.add_argument("--start", type=int, default=None)

    render = sub.add_parser("render", help="Print the xl config a preset would create")
    render.add_argument("preset")

    create = sub.add_parser("create", help="Create a domain from a preset")
    create.add_argument("preset")

    destroy = sub.add_parser("destroy", help="Destroy a domain by name")
    destroy.add_argument("name")
    return parser


def _dispatch(args: argparse.Namespace, settings: Settings) -> int:
    presets_path = args.presets or settings.presets_path
    if args.command == "list":
        list_domains()
    elif args.command == "list-presets":
        list_presets(presets_path)
    elif args.command == "ip":
        timeout = args.timeout if args.timeout is not None else settings.resolve_timeout
        print(dom_ip(args.name, timeout=timeout))
    elif args.command == "macs":
        for mac in sorted(xl.dom_macs(args.name)):
            print(mac)
    elif args.command == "disks":
        for disk in dom_disks(args.name):
            print(disk)
    elif args.command == "name":
        print(unique_name(args.prefix))
    elif args.command == "port":
        print(free_local_port(args.start if args.start is not None else settings.vnc_port_start))
    elif args.command == "render":
        print(render_config(preset_config(args.preset, presets_path, settings.vnc_port_start)))
    elif args.command == "create":
        cfg = create_preset(args.preset, presets_path, settings.vnc_port_start)
        print(cfg.name)
    elif args.command == "destroy":
        xl.destroy(xl.domid(args.name))
        log("SUCCESS", f"Destroyed domain {args.name}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        settings = parse_env()
        return _dispatch(args, settings)
    except XlToolsError as exc:
        log("ERROR", str(exc))
        return 1
