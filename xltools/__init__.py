"""xltools package."""

__all__ = [
    "allocators",
    "cli",
    "config",
    "constants",
    "exceptions",
    "models",
    "parsers",
    "presets",
    "resolver",
    "utils",
    "xenstore",
    "xl",
    "xlcfg",
]
