"""
Release resolver interface and the data it produces.

A resolver turns a flat attribute map (version, os, arch, ...) into either:
- a DownloadSpec: URL, accepted content types and checksum sources, or
- a LocalInstallation: an already installed JDK that needs no download

Resolvers derive their cache key from the same attributes, without any
network access, so configuration errors surface before any I/O.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from jdkcache.core.download import HttpTransport
from jdkcache.core.exceptions import AcquisitionCancelled, ConfigurationError
from jdkcache.core.platform import PlatformInfo, detect_platform

logger = logging.getLogger(__name__)


@dataclass
class DownloadSpec:
    """
    A concrete artifact ready for download and verification.

    Attributes:
        url: Archive URL
        file_name: Local file name for the archive
        accepted_content_types: Values for the Accept header
        expected_digests: Algorithm -> expected hex digest
        checksum_url: Side-channel document carrying the expected digest
        checksum_algorithm: Algorithm of the side-channel digest
        checksum_file_name: Name to look up when the document lists files
        use_etag: Cross-check the response ETag against the computed MD5
    """

    url: str
    file_name: str
    accepted_content_types: Tuple[str, ...] = ()
    expected_digests: Dict[str, str] = field(default_factory=dict)
    checksum_url: Optional[str] = None
    checksum_algorithm: Optional[str] = None
    checksum_file_name: Optional[str] = None
    use_etag: bool = False


@dataclass
class LocalInstallation:
    """An existing JDK directory resolved without downloading."""

    path: Path
    tool: Path


@dataclass
class ReleaseCandidate:
    """One downloadable asset parsed from a provider catalog."""

    file_name: str
    link: str
    version: str
    os: str
    arch: str
    type: str
    extension: str
    implementation: Optional[str] = None
    build: Optional[str] = None
    size: int = 0
    content_type: Optional[str] = None
    release_name: Optional[str] = None

    @property
    def stem(self) -> str:
        """File name without its extension."""
        return self.file_name[: len(self.file_name) - len(self.extension) - 1]

    def __str__(self) -> str:
        return self.file_name


Resolution = Union[DownloadSpec, LocalInstallation]


class ReleaseResolver(ABC):
    """
    Base class for all resolution strategies.

    Args:
        attributes: Request attributes; blank values count as absent
        transport: HTTP transport, required by strategies that query remotes
        platform: Host platform used for os/arch defaults
    """

    provider_id: str = ""
    requires_download: bool = True

    # normalized host names -> vendor names
    OS_ALIASES: Dict[str, str] = {}
    ARCH_ALIASES: Dict[str, str] = {}

    def __init__(
        self,
        attributes: Dict[str, str],
        transport: Optional[HttpTransport] = None,
        platform: Optional[PlatformInfo] = None,
    ):
        self.attributes = {
            str(k).strip().lower(): str(v).strip()
            for k, v in attributes.items()
            if v is not None and str(v).strip()
        }
        self.transport = transport
        host = platform or detect_platform()
        self.platform = host.translate(self.OS_ALIASES, self.ARCH_ALIASES)

    def attribute(
        self, name: str, default: Optional[str] = None, required: bool = False
    ) -> Optional[str]:
        """
        Read one attribute.

        Raises:
            ConfigurationError: If required and absent
        """
        value = self.attributes.get(name, default)
        if required and not value:
            raise ConfigurationError(
                f"{self.provider_id}: attribute '{name}' is required"
            )
        return value

    @property
    def os(self) -> str:
        return self.attribute("os", self.platform.os)

    @property
    def arch(self) -> str:
        return self.attribute("arch", self.platform.arch)

    @abstractmethod
    def cache_key(self) -> str:
        """
        Cache key for this request, computed without network access.

        Raises:
            ConfigurationError: If the attributes can't identify an entry
        """

    @abstractmethod
    def resolve(self, cancel_event: Optional[threading.Event] = None) -> Resolution:
        """Resolve the request to a download spec or a local installation."""

    def _require_transport(self) -> HttpTransport:
        if self.transport is None:
            raise ConfigurationError(f"{self.provider_id} needs an HTTP transport")
        return self.transport

    @staticmethod
    def _check_cancel(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise AcquisitionCancelled("Release resolution cancelled")


__all__ = [
    "DownloadSpec",
    "LocalInstallation",
    "ReleaseCandidate",
    "ReleaseResolver",
    "Resolution",
]
