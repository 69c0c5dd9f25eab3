"""
Paginated release catalog search (GitHub releases API).

The catalog is read page by page (``per_page``/``page`` query, pages counted
from 1). Every asset of every published release is parsed with the vendor's
file name grammar into a ReleaseCandidate, then filtered:

- exact, case-insensitive match on os, arch, image type (and, for vendors
  that publish several, the JVM implementation)
- wildcard match of the requested version pattern

Scanning stops at the first page with at least one match, or when the API
returns an empty page. Among the matches of the newest artifact the
extension preference order picks exactly one asset.
"""

import logging
import re
import threading
from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Pattern, Tuple

from jdkcache.core.cache_key import CacheKeyBuilder
from jdkcache.core.exceptions import ConfigurationError, ResolutionFailure, TransportError
from jdkcache.core.wildcard import WildcardMatcher
from jdkcache.providers.base import DownloadSpec, ReleaseCandidate, ReleaseResolver

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com/repos/"
GITHUB_ACCEPT = ("application/vnd.github.v3+json", "application/json")
DEFAULT_PAGE_SIZE = 40
EXTENSION_PREFERENCE = ("tar.gz", "zip")


@dataclass(frozen=True)
class VendorGrammar:
    """File name grammar of one vendor, as a regex with named groups."""

    vendor: str
    pattern: Pattern

    def parse(self, file_name: str) -> Optional[Dict[str, str]]:
        match = self.pattern.match(file_name)
        return match.groupdict() if match else None


ADOPTIUM_GRAMMAR = VendorGrammar(
    "adoptium",
    re.compile(
        r"^OpenJDK(?P<feature>[\da-z]*)-(?P<type>[a-z]+)_(?P<arch>[0-9a-z\-]+)_"
        r"(?P<os>[0-9a-z\-]+)_(?P<impl>[a-z0-9]+)_"
        r"(?P<build>[\-a-zA-Z0-9]+|\d[\d._]+\d(?![a-z\-])).(?P<extension>[.a-z0-9]+)$",
        re.IGNORECASE,
    ),
)

LIBERICA_GRAMMAR = VendorGrammar(
    "liberica",
    re.compile(
        r"^bellsoft-(?P<type>[a-z]+)(?P<version>[.a-z0-9+]+)-(?P<os>[a-z]+)-"
        r"(?P<arch>[^.]+).(?P<extension>.+)$",
        re.IGNORECASE,
    ),
)

SAPMACHINE_GRAMMAR = VendorGrammar(
    "sapmachine",
    re.compile(
        r"^sapmachine-(?P<type>jdk|jre)-(?P<version>[a-z\-0-9.+]+)_(?P<os>[a-z]+)-"
        r"(?P<arch>[a-z0-9\-]+)_bin.(?P<extension>.+)$",
        re.IGNORECASE,
    ),
)

GRAALVM_GRAMMAR = VendorGrammar(
    "graalvm",
    re.compile(
        r"^graalvm-ce-(?P<type>[a-z.0-9+]+)-(?P<os>[a-z]+)-(?P<arch>[a-z\d]+)-"
        r"(?P<version>[\d.]+\d).(?P<extension>[\D.]+)$",
        re.IGNORECASE,
    ),
)


class CatalogResolver(ReleaseResolver):
    """
    Common catalog search; subclasses supply the vendor specifics.

    Attributes read besides the searched ones:
        check: 'false' skips the checksum side channel (default 'true')

    Args:
        page_size: Releases requested per catalog page
    """

    GRAMMAR: VendorGrammar
    EXACT_ATTRIBUTES: Tuple[str, ...] = ("type", "os", "arch")
    DEFAULTS: Dict[str, str] = {"type": "jdk"}
    SKIP_PRERELEASE = False
    CHECKSUM_ALGORITHM = "sha256"
    USE_ETAG = False
    VERSION_CASE_SENSITIVE = False

    def __init__(self, attributes, transport=None, platform=None, page_size: int = DEFAULT_PAGE_SIZE):
        super().__init__(attributes, transport, platform)
        if page_size <= 0:
            raise ConfigurationError("Catalog page size must be positive")
        self.page_size = page_size

    # -- request ------------------------------------------------------------

    def requested(self) -> Dict[str, str]:
        """Attribute set searched for, including defaults."""
        values = {"version": self.attribute("version", required=True)}
        for name in self.EXACT_ATTRIBUTES:
            if name == "os":
                values[name] = self.os
            elif name == "arch":
                values[name] = self.arch
            else:
                values[name] = self.attribute(name, self.DEFAULTS.get(name))
        missing = sorted(k for k, v in values.items() if not v)
        if missing:
            raise ConfigurationError(
                f"{self.provider_id}: attributes {', '.join(missing)} are required"
            )
        return values

    def cache_key(self) -> str:
        builder = CacheKeyBuilder(self.provider_id)
        for name, value in self.requested().items():
            builder.add(name, value, required=True)
        return builder.add("releases", self.releases_url(), readable=False).build()

    # -- vendor specifics ---------------------------------------------------

    @abstractmethod
    def releases_url(self) -> str:
        """GitHub API URL of the release list, without paging query."""

    def candidate(self, release: Dict[str, Any], asset: Dict[str, Any]) -> Optional[ReleaseCandidate]:
        """Parse one asset; None if its name doesn't follow the grammar."""
        name = asset.get("name") or ""
        link = asset.get("browser_download_url")
        if not link or not name.lower().endswith(tuple(f".{e}" for e in EXTENSION_PREFERENCE)):
            return None
        fields = self.GRAMMAR.parse(name)
        if fields is None or fields["extension"].lower() not in EXTENSION_PREFERENCE:
            logger.debug(f"Ignoring asset with unexpected name: {name}")
            return None
        return ReleaseCandidate(
            file_name=name,
            link=link,
            version=fields.get("version") or "",
            os=fields["os"],
            arch=fields["arch"],
            type=fields["type"],
            extension=fields["extension"].lower(),
            implementation=fields.get("impl"),
            build=fields.get("build"),
            size=int(asset.get("size") or 0),
            content_type=asset.get("content_type"),
            release_name=release.get("tag_name"),
        )

    def checksum_url(self, candidate: ReleaseCandidate) -> Optional[str]:
        return None

    # -- search -------------------------------------------------------------

    def _accept_release(self, release: Dict[str, Any]) -> bool:
        if not release.get("tag_name") or release.get("draft"):
            return False
        if self.SKIP_PRERELEASE and release.get("prerelease"):
            return False
        return True

    def matches(self, candidate: ReleaseCandidate, requested: Dict[str, str]) -> bool:
        for name in self.EXACT_ATTRIBUTES:
            actual = candidate.implementation if name == "impl" else getattr(candidate, name)
            if (actual or "").lower() != requested[name].lower():
                return False
        matcher = WildcardMatcher(requested["version"], case_sensitive=self.VERSION_CASE_SENSITIVE)
        return matcher.match(candidate.version)

    def search(self, cancel_event: Optional[threading.Event] = None) -> List[ReleaseCandidate]:
        """
        Walk catalog pages until a page yields matches.

        Raises:
            ResolutionFailure: If the catalog is exhausted without a match
            TransportError: On HTTP failure or a malformed page
        """
        transport = self._require_transport()
        requested = self.requested()
        base = self.releases_url()
        seen: List[ReleaseCandidate] = []
        page = 1

        while True:
            self._check_cancel(cancel_event)
            url = f"{base}?per_page={self.page_size}&page={page}"
            logger.debug(f"Loading catalog page {page}: {url}")
            releases = transport.get_json(url, accept=GITHUB_ACCEPT)
            if not isinstance(releases, list):
                raise TransportError(f"Unexpected catalog response from {url}", url=url)
            if not releases:
                break

            page_candidates = []
            for release in releases:
                if not isinstance(release, dict) or not self._accept_release(release):
                    continue
                for asset in release.get("assets") or []:
                    parsed = self.candidate(release, asset)
                    if parsed is not None:
                        page_candidates.append(parsed)
            seen.extend(page_candidates)

            found = [c for c in page_candidates if self.matches(c, requested)]
            if found:
                logger.debug(f"Page {page} has {len(found)} matching asset(s)")
                return found
            page += 1

        names = [c.file_name for c in seen]
        if names:
            logger.warning(
                f"{self.provider_id}: found {len(names)} release asset(s), none matching: "
                + ", ".join(names[:20])
            )
        raise ResolutionFailure(self.provider_id, requested, found=names)

    @staticmethod
    def select(candidates: List[ReleaseCandidate]) -> ReleaseCandidate:
        """Pick one asset of the newest artifact by extension preference."""
        newest = candidates[0].stem
        same = [c for c in candidates if c.stem == newest]
        return min(same, key=lambda c: EXTENSION_PREFERENCE.index(c.extension))

    def resolve(self, cancel_event: Optional[threading.Event] = None) -> DownloadSpec:
        selected = self.select(self.search(cancel_event))
        logger.info(f"Selected {selected.file_name} from release {selected.release_name}")
        accepted = (selected.content_type,) if selected.content_type else ()
        checksum_url = self.checksum_url(selected)
        check = (self.attribute("check", "true") or "true").lower() != "false"
        if not check:
            logger.warning(
                f"{self.provider_id}: archive check skipped for {selected.file_name}"
            )
            checksum_url = None
        return DownloadSpec(
            url=selected.link,
            file_name=selected.file_name,
            accepted_content_types=accepted,
            checksum_url=checksum_url,
            checksum_algorithm=self.CHECKSUM_ALGORITHM if checksum_url else None,
            checksum_file_name=selected.file_name,
            use_etag=self.USE_ETAG and check,
        )


# ============================================================================
# Vendors
# ============================================================================


class AdoptiumCatalogResolver(CatalogResolver):
    """
    Eclipse Temurin builds from ``github.com/adoptium/temurin<N>-binaries``.

    The repository is derived from the leading digits of the version
    pattern unless ``repository`` is set. Candidate versions are the build
    field with '_' rendered as '+' (``17.0.4_7`` -> ``17.0.4+7``).
    """

    provider_id = "ADOPTIUM"
    GRAMMAR = ADOPTIUM_GRAMMAR
    EXACT_ATTRIBUTES = ("type", "os", "arch", "impl")
    DEFAULTS = {"type": "jdk", "impl": "hotspot"}
    OS_ALIASES = {"macos": "mac"}

    def repository(self) -> str:
        repository = self.attribute("repository")
        if repository:
            return repository
        feature = re.match(r"\d+", self.attribute("version", required=True))
        if feature is None:
            raise ConfigurationError(
                "ADOPTIUM: 'repository' is required when the version has no feature number"
            )
        return f"temurin{feature.group(0)}-binaries"

    def releases_url(self) -> str:
        return f"{GITHUB_API}adoptium/{self.repository()}/releases"

    def candidate(self, release, asset):
        parsed = super().candidate(release, asset)
        if parsed is not None and parsed.build:
            parsed.version = parsed.build.replace("_", "+")
        return parsed

    def checksum_url(self, candidate):
        return f"{candidate.link}.sha256.txt"


class LibericaCatalogResolver(CatalogResolver):
    """BellSoft Liberica builds from ``github.com/bell-sw/Liberica``."""

    provider_id = "LIBERICA"
    GRAMMAR = LIBERICA_GRAMMAR
    SKIP_PRERELEASE = True
    CHECKSUM_ALGORITHM = "sha1"
    ARCH_ALIASES = {"x64": "amd64"}

    def releases_url(self) -> str:
        return f"{GITHUB_API}bell-sw/Liberica/releases"

    def checksum_url(self, candidate):
        return candidate.link.rsplit("/", 1)[0] + "/sha1sum.txt"


class SapMachineCatalogResolver(CatalogResolver):
    """SAP Machine builds from ``github.com/SAP/SapMachine``."""

    provider_id = "SAPMACHINE"
    GRAMMAR = SAPMACHINE_GRAMMAR
    USE_ETAG = True

    def releases_url(self) -> str:
        return f"{GITHUB_API}SAP/SapMachine/releases"

    def checksum_url(self, candidate):
        link = candidate.link
        return link[: len(link) - len(candidate.extension)] + "sha256.txt"


class GraalVmCatalogResolver(CatalogResolver):
    """
    GraalVM Community builds from ``github.com/graalvm/graalvm-ce-builds``.

    ``type`` names the Java flavour (e.g. 'java11') and has no default.
    Version patterns are matched case-sensitively.
    """

    provider_id = "GRAALVM"
    GRAMMAR = GRAALVM_GRAMMAR
    DEFAULTS: Dict[str, str] = {}
    SKIP_PRERELEASE = True
    VERSION_CASE_SENSITIVE = True
    OS_ALIASES = {"macos": "darwin"}
    ARCH_ALIASES = {"x64": "amd64"}

    def releases_url(self) -> str:
        return f"{GITHUB_API}graalvm/graalvm-ce-builds/releases"

    def checksum_url(self, candidate):
        return f"{candidate.link}.sha256"


__all__ = [
    "VendorGrammar",
    "ADOPTIUM_GRAMMAR",
    "LIBERICA_GRAMMAR",
    "SAPMACHINE_GRAMMAR",
    "GRAALVM_GRAMMAR",
    "CatalogResolver",
    "AdoptiumCatalogResolver",
    "LibericaCatalogResolver",
    "SapMachineCatalogResolver",
    "GraalVmCatalogResolver",
    "EXTENSION_PREFERENCE",
]
