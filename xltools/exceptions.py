"""Custom exceptions for xltools."""

from __future__ import annotations

from typing import List, Optional, Sequence


class XlToolsError(RuntimeError):
    """Base class for every error raised by xltools."""


class ConfigError(XlToolsError):
    """Raised when a configuration value is invalid or incomplete."""


class MissingRequiredField(ConfigError):
    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Missing required configuration field '{field}'")


class ExecutionError(XlToolsError):
    """Raised when an external tool exits with a non-zero status."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        stdout_lines: Optional[List[str]] = None,
        stderr_lines: Optional[List[str]] = None,
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stdout_lines = list(stdout_lines or [])
        self.stderr_lines = list(stderr_lines or [])
        detail = self.stderr_lines[-1] if self.stderr_lines else "no error output"
        super().__init__(f"Command '{' '.join(self.command)}' failed with status {returncode}: {detail}")


class ParseError(XlToolsError):
    """Raised when a line of tool output does not match its grammar."""

    def __init__(self, line: str, reason: str) -> None:
        self.line = line
        self.reason = reason
        super().__init__(f"Cannot parse '{line}': {reason}")


class ResolveTimeoutError(XlToolsError, TimeoutError):
    """Raised when IP resolution does not succeed before its deadline."""

    def __init__(self, domain: Optional[str], timeout: float, elapsed: float) -> None:
        self.domain = domain
        self.timeout = timeout
        self.elapsed = elapsed
        target = f"domain '{domain}'" if domain else "the requested MAC addresses"
        super().__init__(f"No IPv4 address found for {target} within {timeout:g}s (waited {elapsed:.1f}s)")


class ResourceExhaustionError(XlToolsError):
    """Raised when no free local port is left to allocate."""

    def __init__(self, start: int, end: int) -> None:
        self.start = start
        self.end = end
        super().__init__(f"No free local port between {start} and {end}")
