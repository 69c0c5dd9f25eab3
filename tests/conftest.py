"""
Pytest configuration and shared fixtures for jdkcache tests.
"""

import io
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Dict, Generator, Optional

import pytest

from jdkcache.core.platform import PlatformInfo


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def cache_root(temp_dir: Path) -> Path:
    """Empty cache root directory."""
    root = temp_dir / "cache"
    root.mkdir()
    return root


@pytest.fixture
def linux_x64() -> PlatformInfo:
    """Fixed host platform so defaults don't depend on the test machine."""
    return PlatformInfo(os="linux", arch="x64")


@pytest.fixture
def no_network(monkeypatch):
    """Disable network access for tests."""
    import socket

    def guard(*args, **kwargs):
        raise RuntimeError("Network access not allowed in this test")

    monkeypatch.setattr(socket, "socket", guard)


# ============================================================================
# Archive Builders
# ============================================================================


def make_tar_gz(
    entries: Dict[str, Optional[bytes]], links: Optional[Dict[str, str]] = None
) -> bytes:
    """
    Build a tar.gz in memory.

    Args:
        entries: name -> content, None for a directory entry
        links: name -> symbolic link target
    """
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tf:
        for name, content in entries.items():
            info = tarfile.TarInfo(name)
            if content is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tf.addfile(info)
            else:
                info.size = len(content)
                info.mode = 0o644
                tf.addfile(info, io.BytesIO(content))
        for name, target in (links or {}).items():
            info = tarfile.TarInfo(name)
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tf.addfile(info)
    return buffer.getvalue()


def make_zip(entries: Dict[str, Optional[bytes]]) -> bytes:
    """Build a zip in memory; None content adds a directory entry."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in entries.items():
            if content is None:
                zf.writestr(name if name.endswith("/") else f"{name}/", b"")
            else:
                zf.writestr(name, content)
    return buffer.getvalue()


JDK_ENTRIES = {
    "jdk-17.0.4+8/": None,
    "jdk-17.0.4+8/bin/": None,
    "jdk-17.0.4+8/bin/java": b"#!/bin/sh\necho java\n",
    "jdk-17.0.4+8/bin/javac": b"#!/bin/sh\necho javac\n",
    "jdk-17.0.4+8/lib/modules": b"modules-data",
    "jdk-17.0.4+8/release": b'JAVA_VERSION="17.0.4"\n',
}


@pytest.fixture
def jdk_tar_gz() -> bytes:
    """A small JDK-shaped tar.gz archive."""
    return make_tar_gz(JDK_ENTRIES)


@pytest.fixture
def jdk_zip() -> bytes:
    """A small JDK-shaped zip archive."""
    return make_zip(JDK_ENTRIES)


@pytest.fixture
def build_tar_gz():
    """The tar.gz builder, for tests that need custom entries."""
    return make_tar_gz


@pytest.fixture
def build_zip():
    """The zip builder, for tests that need custom entries."""
    return make_zip
