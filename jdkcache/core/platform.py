"""
Host platform detection.

Used to fill in the os/arch request attributes when the caller leaves them
out. Names are normalized to 'linux', 'macos', 'windows' and 'x64',
'aarch64', 'x86', 'arm'; each provider translates them into its own
vocabulary through a small alias table.
"""

import functools
import platform
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class PlatformInfo:
    """Normalized host operating system and CPU architecture."""

    os: str
    arch: str

    def translate(
        self,
        os_aliases: Optional[Dict[str, str]] = None,
        arch_aliases: Optional[Dict[str, str]] = None,
    ) -> "PlatformInfo":
        """Return a copy with names mapped through vendor alias tables."""
        return PlatformInfo(
            os=(os_aliases or {}).get(self.os, self.os),
            arch=(arch_aliases or {}).get(self.arch, self.arch),
        )

    def __str__(self) -> str:
        return f"{self.os}-{self.arch}"


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect the current platform, once per process.

    Example:
        >>> str(detect_platform())
        'linux-x64'
    """
    return PlatformInfo(os=_detect_os(), arch=_detect_architecture())


def _detect_os() -> str:
    system = platform.system().lower()
    if system == "darwin":
        return "macos"
    if system.startswith(("win", "cygwin", "msys")):
        return "windows"
    return system


def _detect_architecture() -> str:
    machine = platform.machine().lower()
    if machine in ("x86_64", "amd64", "x64"):
        return "x64"
    if machine in ("aarch64", "arm64"):
        return "aarch64"
    if machine in ("i386", "i686", "x86"):
        return "x86"
    if machine.startswith("arm"):
        return "arm"
    return machine


def clear_platform_cache():
    """Force the next detect_platform() call to re-detect."""
    detect_platform.cache_clear()


__all__ = ["PlatformInfo", "detect_platform", "clear_platform_cache"]
