"""
File system helpers for cache entries.

This module provides:
- Safe directory removal restricted to the cache root
- Destination checks for archive members (directory traversal)
- JDK tool lookup under an installation's bin/ directory
"""

import logging
import os
import shutil
import stat
import sys
from pathlib import Path
from typing import Optional, Union

from jdkcache.core.exceptions import InsecureArchiveError, InstallError

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"


def validate_member_path(name: str, destination: Path) -> Path:
    """
    Resolve an archive member path under destination.

    Args:
        name: Member path relative to the destination
        destination: Extraction destination

    Returns:
        The target path

    Raises:
        InsecureArchiveError: If the member would land outside destination
    """
    target = (destination / name).resolve()
    if not target.is_relative_to(destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{name}' attempts directory traversal, "
            "extraction has been blocked"
        )
    return destination / name


def make_owner_executable(path: Path) -> None:
    """Add the owner execute bit to a file."""
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR)


def _make_writable_and_retry(func, path, _exc):
    os.chmod(path, stat.S_IWRITE)
    func(path)


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Remove a directory tree, refusing paths outside require_prefix.

    Args:
        path: Directory to remove
        require_prefix: If given, path must be located under this directory

    Raises:
        ValueError: If path is not under require_prefix
        InstallError: If deletion fails

    Example:
        >>> safe_rmtree(cache_root / ".part#ADOPTIUM_17", require_prefix=cache_root)
    """
    path = Path(path)
    if require_prefix is not None:
        prefix = Path(require_prefix).resolve()
        if not path.resolve().is_relative_to(prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{prefix}'"
            )

    if not path.exists() and not path.is_symlink():
        return

    try:
        if path.is_file() or path.is_symlink():
            path.unlink()
        elif IS_WINDOWS and sys.version_info >= (3, 12):
            shutil.rmtree(path, onexc=_make_writable_and_retry)
        elif IS_WINDOWS:
            shutil.rmtree(path, onerror=_make_writable_and_retry)
        else:
            shutil.rmtree(path)
    except OSError as e:
        raise InstallError(f"Failed to remove '{path}': {e}", source=str(path)) from e


def find_jdk_executable(jdk_home: Path, name: str) -> Optional[Path]:
    """
    Find a tool in ``<jdk_home>/bin``.

    On Windows '.exe' is appended to the tool name.

    Returns:
        Path to the tool if it is an executable regular file, None otherwise

    Example:
        >>> find_jdk_executable(Path("/opt/jdk-17"), "javac")
        PosixPath('/opt/jdk-17/bin/javac')
    """
    file_name = f"{name}.exe" if IS_WINDOWS else name
    candidate = Path(jdk_home) / "bin" / file_name
    if candidate.is_file() and os.access(candidate, os.X_OK):
        return candidate
    return None


__all__ = [
    "IS_WINDOWS",
    "validate_member_path",
    "make_owner_executable",
    "safe_rmtree",
    "find_jdk_executable",
]
