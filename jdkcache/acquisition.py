"""
Acquisition orchestration: cache check, lock, resolve, download, verify,
extract and atomic install.

State machine per acquisition:

    CHECK_CACHE -> DONE                                  (hit)
    CHECK_CACHE -> LOCK -> CHECK_CACHE -> DONE           (filled while waiting)
    CHECK_CACHE -> LOCK -> RESOLVE -> DOWNLOAD_VERIFY
                -> EXTRACT -> INSTALL -> UNLOCK -> DONE  (miss)

Any failure after LOCK goes to FAILED, still runs UNLOCK and discards the
working directory. Offline mode turns a cache miss into OfflineViolation
before any network access.

On-disk layout under the cache root:

    <key>/               installed entry, immutable once present
    .#<key>              lock marker
    .part#<key>/         working directory of the current lock holder
    .archives/<key>/<file> kept archives (keep_archive)
"""

import logging
import os
import shutil
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from jdkcache.config import AcquisitionRequest, AcquisitionSettings
from jdkcache.core.archive import ArchiveExtractor, ArchiveInspector
from jdkcache.core.download import DownloadProgress, HttpTransport, download_to_file
from jdkcache.core.exceptions import (
    InstallError,
    OfflineViolation,
    TransportError,
)
from jdkcache.core.filesystem import safe_rmtree
from jdkcache.core.locking import CacheLock
from jdkcache.core.platform import PlatformInfo
from jdkcache.core.verification import (
    assert_checksum,
    checksums_equal,
    extract_digest,
    md5_from_etag,
    normalize_algorithm,
)
from jdkcache.providers.base import DownloadSpec, ReleaseResolver
from jdkcache.providers.registry import create_resolver

logger = logging.getLogger(__name__)

WORK_PREFIX = ".part#"
ARCHIVES_DIR = ".archives"

# release hosts such as GitHub serve checksum files as binary assets
CHECKSUM_MIME_TYPES = ("text/plain", "application/octet-stream")


class AcquisitionState(str, Enum):
    CHECK_CACHE = "check_cache"
    LOCK = "lock"
    RESOLVE = "resolve"
    DOWNLOAD_VERIFY = "download_verify"
    EXTRACT = "extract"
    INSTALL = "install"
    UNLOCK = "unlock"
    DONE = "done"
    FAILED = "failed"


@dataclass
class AcquisitionResult:
    """Result of one acquisition."""

    path: Path
    """Installed JDK directory"""

    cache_key: Optional[str]
    """Cache entry name, None for local installations"""

    was_cached: bool
    """Whether no download was needed"""

    verified: bool = False
    """Whether at least one digest was checked"""

    download_spec: Optional[DownloadSpec] = None
    states: List[AcquisitionState] = field(default_factory=list)
    elapsed_seconds: float = 0.0


class AcquisitionOrchestrator:
    """
    Acquires JDK distributions into a shared cache directory.

    Several orchestrators, in one process or many, may share a cache root;
    per-key marker locks serialize work on the same entry.

    Args:
        settings: Cache root, offline flag, HTTP and lock settings
        transport: Optional HTTP transport, built from settings if omitted
        platform: Host platform override for os/arch defaults
        progress_callback: Receives download progress updates
        archive_consumers: Called with each verified archive before extraction

    Example:
        >>> orchestrator = AcquisitionOrchestrator(AcquisitionSettings())
        >>> result = orchestrator.acquire(
        ...     AcquisitionRequest("ADOPTIUM", {"version": "17*", "os": "linux"})
        ... )
        >>> print(result.path)
    """

    def __init__(
        self,
        settings: AcquisitionSettings,
        transport: Optional[HttpTransport] = None,
        platform: Optional[PlatformInfo] = None,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
        archive_consumers: Sequence[Callable[[Path], None]] = (),
    ):
        self.settings = settings
        self.transport = transport or HttpTransport(
            timeout=settings.connection_timeout,
            proxies=settings.proxies,
            authorization=settings.authorization,
            verify_ssl=settings.verify_ssl,
            gateway_timeout_backoff=settings.gateway_timeout_backoff,
        )
        self.platform = platform
        self.progress_callback = progress_callback
        self.archive_consumers = list(archive_consumers)

    @property
    def cache_root(self) -> Path:
        return self.settings.cache_root

    def resolver_for(self, request: AcquisitionRequest) -> ReleaseResolver:
        return create_resolver(
            request.provider,
            request.attributes,
            transport=self.transport,
            platform=self.platform,
            page_size=self.settings.catalog_page_size,
        )

    def acquire(
        self,
        request: AcquisitionRequest,
        cancel_event: Optional[threading.Event] = None,
    ) -> AcquisitionResult:
        """
        Return an installed JDK for the request, downloading it if needed.

        Args:
            request: Provider id and attributes
            cancel_event: Cooperative cancellation, checked while waiting for
                the lock, per catalog page, per download chunk and per
                archive entry

        Returns:
            AcquisitionResult pointing at the installed directory

        Raises:
            ConfigurationError: Missing or invalid attributes, before any I/O
            OfflineViolation: Cache miss in offline mode
            ResolutionFailure, TransportError, IntegrityError,
            ArchiveFormatError, InstallError, LockError,
            AcquisitionCancelled: See jdkcache.core.exceptions
        """
        started = time.monotonic()
        resolver = self.resolver_for(request)

        if not resolver.requires_download:
            installation = resolver.resolve(cancel_event)
            return AcquisitionResult(
                path=installation.path,
                cache_key=None,
                was_cached=True,
                states=[AcquisitionState.RESOLVE, AcquisitionState.DONE],
            )

        key = resolver.cache_key()
        target = self.cache_root / key
        states = [AcquisitionState.CHECK_CACHE]

        if target.is_dir():
            logger.info(f"Found cached JDK: {target}")
            states.append(AcquisitionState.DONE)
            return self._cached(target, key, states, started)

        if self.settings.offline:
            raise OfflineViolation(key, str(self.cache_root))

        logger.info(f"JDK '{key}' is not cached, acquiring")
        self.cache_root.mkdir(parents=True, exist_ok=True)
        states.append(AcquisitionState.LOCK)
        lock = CacheLock(
            self.cache_root,
            key,
            poll_interval=self.settings.lock_poll_interval,
            timeout=self.settings.lock_timeout,
            cancel_event=cancel_event,
        )
        with lock:
            try:
                states.append(AcquisitionState.CHECK_CACHE)
                if target.is_dir():
                    logger.info(f"JDK was installed by another process: {target}")
                    states.append(AcquisitionState.UNLOCK)
                    states.append(AcquisitionState.DONE)
                    return self._cached(target, key, states, started)
                result = self._populate(resolver, key, target, states, cancel_event)
            except BaseException:
                states.append(AcquisitionState.FAILED)
                states.append(AcquisitionState.UNLOCK)
                raise
        states.append(AcquisitionState.UNLOCK)
        states.append(AcquisitionState.DONE)
        result.elapsed_seconds = time.monotonic() - started
        return result

    def _cached(self, target: Path, key: str, states, started: float) -> AcquisitionResult:
        return AcquisitionResult(
            path=target,
            cache_key=key,
            was_cached=True,
            states=states,
            elapsed_seconds=time.monotonic() - started,
        )

    def _populate(
        self,
        resolver: ReleaseResolver,
        key: str,
        target: Path,
        states: List[AcquisitionState],
        cancel_event: Optional[threading.Event],
    ) -> AcquisitionResult:
        """Work done while holding the lock; target is known to be absent."""
        work_dir = self.cache_root / f"{WORK_PREFIX}{key}"
        if work_dir.exists():
            logger.warning(f"Removing leftovers of an interrupted acquisition: {work_dir}")
            safe_rmtree(work_dir, require_prefix=self.cache_root)
        work_dir.mkdir(parents=True)

        try:
            states.append(AcquisitionState.RESOLVE)
            spec = resolver.resolve(cancel_event)
            logger.info(f"Resolved {key} to {spec.url}")

            states.append(AcquisitionState.DOWNLOAD_VERIFY)
            archive, verified = self._download_verified(spec, work_dir, cancel_event)
            for consumer in self.archive_consumers:
                consumer(archive)

            states.append(AcquisitionState.EXTRACT)
            unpacked = work_dir / "unpacked"
            archive_type = ArchiveInspector.detect_type(archive)
            root = ArchiveInspector.find_root(archive, archive_type)
            logger.debug(f"Archive root: {root}")
            ArchiveExtractor(cancel_event=cancel_event).extract(
                archive, unpacked, [root] if root else [], archive_type
            )
            if self.settings.keep_archive:
                self._keep(archive, key)

            states.append(AcquisitionState.INSTALL)
            self._install(unpacked, target)
        finally:
            try:
                safe_rmtree(work_dir, require_prefix=self.cache_root)
            except InstallError as e:
                logger.warning(f"Failed to remove working directory: {e}")

        return AcquisitionResult(
            path=target,
            cache_key=key,
            was_cached=False,
            verified=verified,
            download_spec=spec,
            states=states,
        )

    def _download_verified(
        self,
        spec: DownloadSpec,
        work_dir: Path,
        cancel_event: Optional[threading.Event],
    ):
        expected = {
            normalize_algorithm(name): value
            for name, value in spec.expected_digests.items()
        }
        if spec.checksum_url:
            algorithm = normalize_algorithm(spec.checksum_algorithm or "sha256")
            text = self.transport.get_text(spec.checksum_url, accept=CHECKSUM_MIME_TYPES)
            digest = extract_digest(text, spec.checksum_file_name)
            if not digest:
                raise TransportError(
                    f"No {algorithm} digest for {spec.file_name} in {spec.checksum_url}",
                    url=spec.checksum_url,
                )
            logger.debug(f"Published {algorithm}: {digest}")
            expected[algorithm] = digest

        algorithms = set(expected)
        if spec.use_etag:
            algorithms.add("md5")

        archive_dir = work_dir / "archive"
        outcome = download_to_file(
            self.transport,
            spec.url,
            archive_dir / spec.file_name,
            accept=spec.accepted_content_types,
            algorithms=sorted(algorithms),
            cancel_event=cancel_event,
            progress_callback=self.progress_callback,
        )

        for algorithm, value in expected.items():
            assert_checksum(algorithm, value, outcome.digests[algorithm], outcome.path)
        verified = bool(expected)

        if spec.use_etag:
            etag_md5 = md5_from_etag(outcome.etag)
            if etag_md5 and checksums_equal(etag_md5, outcome.digests["md5"]):
                logger.info("ETag matches MD5 of the archive")
                verified = True
            elif etag_md5:
                logger.warning(
                    f"ETag {outcome.etag} doesn't match calculated MD5 "
                    f"{outcome.digests['md5']}"
                )

        if not verified:
            logger.warning(
                f"No checksum available for {spec.url}, the archive is not verified"
            )
        return outcome.path, verified

    def _keep(self, archive: Path, key: str) -> None:
        kept = self.cache_root / ARCHIVES_DIR / key / archive.name
        kept.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(archive), str(kept))
        logger.info(f"Archive kept as {kept}")

    @staticmethod
    def _install(unpacked: Path, target: Path) -> None:
        try:
            os.rename(unpacked, target)
        except OSError as e:
            raise InstallError(
                f"Can't rename {unpacked} to {target}: {e}",
                source=str(unpacked),
                target=str(target),
            ) from e
        logger.info(f"Installed JDK: {target}")


def acquire(
    request: AcquisitionRequest,
    settings: Optional[AcquisitionSettings] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Path:
    """
    Convenience wrapper returning only the installed path.

    Example:
        >>> from jdkcache import acquire, AcquisitionRequest
        >>> jdk = acquire(AcquisitionRequest("CORRETTO", {"version": "17"}))
    """
    orchestrator = AcquisitionOrchestrator(settings or AcquisitionSettings())
    return orchestrator.acquire(request, cancel_event).path


__all__ = [
    "AcquisitionOrchestrator",
    "AcquisitionResult",
    "AcquisitionState",
    "acquire",
]
