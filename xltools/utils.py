"""Utility functions for xltools."""

from __future__ import annotations

import hashlib
import os
import random
import subprocess
from pathlib import Path
from typing import List, Optional

from xltools.constants import _LOG_VERBOSE, BYTES_PER_GIB, MAC_ADDRESS_RE, TRUTHY
from xltools.exceptions import ConfigError, ExecutionError, XlToolsError


def log(level: str, message: str) -> None:
    """Lightweight structured logging with coloured level tags."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in TRUTHY


def parse_int_env(name: str, default: str, min_val: int = 1, max_val: Optional[int] = None) -> int:
    raw = get_env(name, default)
    assert raw is not None
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer (got '{raw}')")
    if value < min_val:
        raise ConfigError(f"{name} must be >= {min_val} (got {value})")
    if max_val is not None and value > max_val:
        raise ConfigError(f"{name} must be <= {max_val} (got {value})")
    return value


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def normalize_mac(raw: str) -> str:
    """Return a lower-case colon separated MAC or raise ConfigError."""
    if not isinstance(raw, str):
        # YAML 1.1 reads an all-digit MAC such as 52:54:00:12:34:56 as a base-60 int.
        raise ConfigError(f"MAC address must be a string, got {raw!r}; quote it in YAML")
    mac = raw.strip().lower().replace("-", ":")
    if not MAC_ADDRESS_RE.match(mac):
        raise ConfigError(f"Invalid MAC address '{raw}'")
    return mac


def random_mac() -> str:
    """Generate a random MAC address in the Xen OUI."""
    octets = [0x00, 0x16, 0x3E]
    octets += [random.randint(0x00, 0x7F) for _ in range(3)]
    return ":".join(f"{octet:02x}" for octet in octets)


def deterministic_mac(seed: str) -> str:
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    octets = [0x00, 0x16, 0x3E, digest[0] & 0x7F, digest[1], digest[2]]
    return ":".join(f"{octet:02x}" for octet in octets)


def new_img(path: Path, size_gb: int) -> Path:
    """Create (or resize) a sparse raw image of ``size_gb`` GiB at ``path``."""
    if size_gb < 1:
        raise ConfigError(f"Image size must be at least 1 GiB (got {size_gb})")
    ensure_directory(path.parent)
    with open(path, "ab") as handle:
        handle.truncate(size_gb * BYTES_PER_GIB)
    log("INFO", f"Created {size_gb}G image at {path}")
    return path


def check_root() -> None:
    if os.geteuid() != 0:
        raise XlToolsError("Must be run as root")


def output_lines(text: Optional[str]) -> List[str]:
    return [line for line in (text or "").splitlines() if line.strip()]


def check_command(cmd: List[str], result: subprocess.CompletedProcess) -> subprocess.CompletedProcess:
    """Raise ExecutionError carrying the captured output when ``result`` failed."""
    if result.returncode == 0:
        return result
    stdout_lines = output_lines(result.stdout)
    stderr_lines = output_lines(result.stderr)
    log("ERROR", f"Command failed ({result.returncode}): {' '.join(cmd)}")
    for line in stdout_lines:
        log("ERROR", f"out: {line}")
    for line in stderr_lines:
        log("ERROR", f"err: {line}")
    raise ExecutionError(cmd, result.returncode, stdout_lines, stderr_lines)


def run(cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
    """Run command with logging, capturing stdout and stderr separately."""
    log("DEBUG", f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            **kwargs,
        )
    except FileNotFoundError as exc:
        raise ExecutionError(cmd, 127, [], [str(exc)]) from exc
    if check:
        check_command(cmd, result)
    return result
