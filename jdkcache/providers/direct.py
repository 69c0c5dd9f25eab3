"""
Direct-URL strategies.

These resolvers assemble the archive URL from the request attributes and
never list a remote catalog:

- URL: a caller supplied URL with optional literal digests
- ADOPTIUM_API: the Adoptium v3 binary redirect endpoint
- CORRETTO: Amazon Corretto "latest" downloads
- MICROSOFT: Microsoft Build of OpenJDK "aka.ms" downloads

Where the vendor publishes a checksum document, its URL is derived from the
archive URL by a fixed transformation.
"""

import logging
import re
import threading
from typing import Dict, Optional
from urllib.parse import quote, urlencode, urlsplit

from jdkcache.core.cache_key import CacheKeyBuilder
from jdkcache.core.exceptions import ConfigurationError
from jdkcache.core.verification import SUPPORTED_ALGORITHMS
from jdkcache.providers.base import DownloadSpec, ReleaseResolver

logger = logging.getLogger(__name__)

ARCHIVE_MIMES = (
    "application/zip",
    "application/octet-stream",
    "application/x-zip-compressed",
    "application/x-gzip",
    "application/x-gtar",
    "application/x-tar",
    "application/tar",
    "application/x-compress",
    "application/x-compressed",
    "application/x-tgz",
    "application/tar+gzip",
)

MAX_ID_LENGTH = 96
_ID_PATTERN = re.compile(r"^[\w\-+.\s]+$")


def _archive_extension(os_name: str) -> str:
    return "zip" if os_name.lower().startswith("win") else "tar.gz"


# ============================================================================
# Caller Supplied URL
# ============================================================================


class UrlResolver(ReleaseResolver):
    """
    Downloads a caller supplied URL.

    Attributes read:
        id: Cache identity chosen by the caller (letters, digits, '-_+.'
            and spaces, at most 96 characters)
        url: http(s) URL of the archive
        sha256/sha384/sha512/sha1/md5/md2: Literal expected digests
        mime: Comma separated accepted content types
        checksum_url: Document carrying the expected digest
        checksum_algorithm: Algorithm of that digest (default sha256)
    """

    provider_id = "URL"

    def _id(self) -> str:
        value = self.attribute("id", required=True)
        if len(value) > MAX_ID_LENGTH or not _ID_PATTERN.match(value):
            raise ConfigurationError(
                f"URL: id '{value}' must be at most {MAX_ID_LENGTH} characters of "
                "letters, digits, '-', '_', '+', '.' or spaces"
            )
        return value

    def _url(self) -> str:
        url = self.attribute("url", required=True)
        if urlsplit(url).scheme.lower() not in ("http", "https"):
            raise ConfigurationError(f"URL: unsupported URL scheme in '{url}'")
        return url

    def cache_key(self) -> str:
        return (
            CacheKeyBuilder(self.provider_id)
            .add("id", self._id(), required=True)
            .add("url", self._url(), required=True, readable=False)
            .build()
        )

    def resolve(self, cancel_event: Optional[threading.Event] = None) -> DownloadSpec:
        url = self._url()
        digests: Dict[str, str] = {
            algorithm: self.attributes[algorithm]
            for algorithm in SUPPORTED_ALGORITHMS
            if self.attributes.get(algorithm)
        }
        mime = self.attribute("mime")
        accepted = (
            tuple(m.strip() for m in mime.split(",") if m.strip()) if mime else ARCHIVE_MIMES
        )
        checksum_url = self.attribute("checksum_url")
        file_name = urlsplit(url).path.rsplit("/", 1)[-1] or "archive"
        return DownloadSpec(
            url=url,
            file_name=file_name,
            accepted_content_types=accepted,
            expected_digests=digests,
            checksum_url=checksum_url,
            checksum_algorithm=self.attribute("checksum_algorithm", "sha256")
            if checksum_url
            else None,
            checksum_file_name=file_name if checksum_url else None,
        )


# ============================================================================
# Adoptium API
# ============================================================================


class AdoptiumApiResolver(ReleaseResolver):
    """
    Builds an Adoptium v3 ``binary`` URL.

    Either ``release`` (e.g. 'jdk-17.0.4+8') or ``feature`` (e.g. '17',
    meaning the latest ``release_type`` build of that feature release) must
    be given.
    """

    provider_id = "ADOPTIUM_API"
    API_BASE_URL = "https://api.adoptium.net/v3/"
    OS_ALIASES = {"macos": "mac"}

    DEFAULTS = {
        "type": "jdk",
        "impl": "hotspot",
        "release_type": "ga",
        "heap": "normal",
        "vendor": "eclipse",
    }

    def _value(self, name: str) -> str:
        return self.attribute(name, self.DEFAULTS.get(name))

    def _release_selector(self):
        release = self.attribute("release")
        feature = self.attribute("feature")
        if not release and not feature:
            raise ConfigurationError(
                "ADOPTIUM_API: either 'release' or 'feature' is required"
            )
        return release, feature

    def cache_key(self) -> str:
        release, feature = self._release_selector()
        builder = CacheKeyBuilder(self.provider_id)
        if release:
            builder.add("release", release)
        else:
            builder.add("feature", feature).add("release_type", self._value("release_type"))
        return (
            builder.add("os", self.os, required=True)
            .add("arch", self.arch, required=True)
            .add("type", self._value("type"))
            .add("impl", self._value("impl"))
            .add("heap", self._value("heap"))
            .add("vendor", self._value("vendor"))
            .add("c_lib", self.attribute("c_lib"))
            .add("project", self.attribute("project"))
            .add("api_url", self.attribute("api_url"), readable=False)
            .build()
        )

    def build_url(self) -> str:
        release, feature = self._release_selector()
        base = self.attribute("api_url", self.API_BASE_URL).rstrip("/")
        if release:
            path = f"binary/version/{quote(release, safe='')}"
        else:
            path = f"binary/latest/{quote(feature)}/{quote(self._value('release_type'))}"
        segments = [
            self.os,
            self.arch,
            self._value("type"),
            self._value("impl"),
            self._value("heap"),
            self._value("vendor"),
        ]
        url = f"{base}/{path}/" + "/".join(quote(s, safe="") for s in segments)

        query = {
            name: self.attributes[name]
            for name in ("c_lib", "project")
            if self.attributes.get(name)
        }
        if query:
            url += "?" + urlencode(query)
        return url

    def resolve(self, cancel_event: Optional[threading.Event] = None) -> DownloadSpec:
        url = self.build_url()
        logger.debug(f"Adoptium binary URL: {url}")
        # the endpoint redirects, the archive kind is detected from content
        return DownloadSpec(
            url=url,
            file_name="adoptium-binary",
            accepted_content_types=("application/x-gzip", "application/zip"),
        )


# ============================================================================
# Vendor "latest" Downloads
# ============================================================================


class CorrettoResolver(ReleaseResolver):
    """Amazon Corretto: ``amazon-corretto-<version>-<arch>-<os>-<type>``."""

    provider_id = "CORRETTO"
    BASE_URL = "https://corretto.aws/downloads/"
    DOWNLOAD_PATH = "latest"
    CHECKSUM_PATH = "latest_sha256"

    def file_name(self) -> str:
        version = self.attribute("version", required=True)
        type_ = self.attribute("type", "jdk")
        return (
            f"amazon-corretto-{version}-{self.arch}-{self.os}-{type_}."
            f"{_archive_extension(self.os)}"
        )

    def cache_key(self) -> str:
        return (
            CacheKeyBuilder(self.provider_id)
            .add("version", self.attribute("version"), required=True)
            .add("os", self.os, required=True)
            .add("arch", self.arch, required=True)
            .add("type", self.attribute("type", "jdk"))
            .build()
        )

    def resolve(self, cancel_event: Optional[threading.Event] = None) -> DownloadSpec:
        file_name = self.file_name()
        return DownloadSpec(
            url=f"{self.BASE_URL}{self.DOWNLOAD_PATH}/{file_name}",
            file_name=file_name,
            accepted_content_types=ARCHIVE_MIMES,
            checksum_url=f"{self.BASE_URL}{self.CHECKSUM_PATH}/{file_name}",
            checksum_algorithm="sha256",
        )


class MicrosoftResolver(ReleaseResolver):
    """Microsoft Build of OpenJDK: ``microsoft-<type>-<version>-<os>-<arch>``."""

    provider_id = "MICROSOFT"
    BASE_URL = "https://aka.ms/download-jdk/"

    def file_name(self) -> str:
        version = self.attribute("version", required=True)
        type_ = self.attribute("type", "jdk")
        return (
            f"microsoft-{type_}-{version}-{self.os}-{self.arch}."
            f"{_archive_extension(self.os)}"
        )

    def cache_key(self) -> str:
        return (
            CacheKeyBuilder(self.provider_id)
            .add("version", self.attribute("version"), required=True)
            .add("os", self.os, required=True)
            .add("arch", self.arch, required=True)
            .add("type", self.attribute("type", "jdk"))
            .build()
        )

    def resolve(self, cancel_event: Optional[threading.Event] = None) -> DownloadSpec:
        file_name = self.file_name()
        url = f"{self.BASE_URL}{file_name}"
        return DownloadSpec(
            url=url,
            file_name=file_name,
            accepted_content_types=ARCHIVE_MIMES,
            checksum_url=f"{url}.sha256sum.txt",
            checksum_algorithm="sha256",
            checksum_file_name=file_name,
        )


__all__ = [
    "UrlResolver",
    "AdoptiumApiResolver",
    "CorrettoResolver",
    "MicrosoftResolver",
    "ARCHIVE_MIMES",
]
