"""
HTTP transport and verified streaming downloads.

This module provides:
- HttpTransport: GET requests with an Accept header built from the accepted
  content types, a single retry after a fixed backoff on 504 Gateway
  Timeout, and rate-limit/ETag headers surfaced as diagnostics
- download_to_file(): streams a response body to disk through a
  ChecksumPipeline, checking a cooperative cancel event on every chunk
- Progress reporting (bytes, percentage, speed, ETA)

Proxy and authorization parameters are opaque here: they are handed to
requests unmodified.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional

import requests
from requests.exceptions import RequestException

from jdkcache import __version__
from jdkcache.core.exceptions import AcquisitionCancelled, TransportError
from jdkcache.core.verification import ChecksumPipeline

logger = logging.getLogger(__name__)

USER_AGENT = f"jdkcache/{__version__}"
CHUNK_SIZE = 1024 * 1024
DEFAULT_GATEWAY_BACKOFF = 10.0
DEFAULT_TIMEOUT = 60.0

ARCHIVE_MIME_TYPES = frozenset(
    {
        "binary/octet-stream",
        "application/x-gzip",
        "application/zip",
        "application/tar+gzip",
    }
)

RATE_LIMIT_HEADERS = (
    "X-RateLimit-Limit",
    "X-RateLimit-Remaining",
    "X-RateLimit-Reset",
)


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second
    eta_seconds: float

    def __str__(self) -> str:
        return format_progress(self)


@dataclass
class DownloadOutcome:
    """Result of a completed download."""

    path: Path
    size: int
    digests: Dict[str, str] = field(default_factory=dict)
    etag: Optional[str] = None
    content_type: Optional[str] = None


class HttpTransport:
    """
    Thin wrapper around a requests session.

    Args:
        timeout: Connect/read timeout in seconds
        proxies: requests-style proxy mapping, passed through as-is
        authorization: Value for the Authorization header, passed through as-is
        verify_ssl: Verify TLS certificates
        gateway_timeout_backoff: Seconds to wait before the single retry
            after a 504 response
        session: Optional preconfigured session
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        proxies: Optional[Mapping[str, str]] = None,
        authorization: Optional[str] = None,
        verify_ssl: bool = True,
        gateway_timeout_backoff: float = DEFAULT_GATEWAY_BACKOFF,
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self.gateway_timeout_backoff = gateway_timeout_backoff
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = USER_AGENT
        if proxies:
            self.session.proxies.update(dict(proxies))
        if authorization:
            self.session.headers["Authorization"] = authorization
        self.session.verify = verify_ssl

    def get(
        self,
        url: str,
        accept: Iterable[str] = (),
        stream: bool = False,
        expect_archive: bool = False,
    ) -> requests.Response:
        """
        Perform a GET and return a 200 response.

        Args:
            url: Target URL
            accept: Accepted content types, joined into the Accept header
            stream: Leave the body unread for streaming
            expect_archive: Add application/octet-stream to the Accept header
                and tolerate the common archive MIME types

        Returns:
            The 200 response

        Raises:
            TransportError: On connection failure, any non-200 status, a
                second 504, or an unexpected content type
        """
        accepted: List[str] = [a.strip() for a in accept if a and a.strip()]
        if expect_archive and "application/octet-stream" not in accepted:
            accepted.append("application/octet-stream")
        headers = {"Accept": ", ".join(accepted)} if accepted else {}

        response = self._send(url, headers, stream)
        if response.status_code == 504:
            response.close()
            logger.warning(
                f"Gateway timeout from {url}, retrying in "
                f"{self.gateway_timeout_backoff:g}s"
            )
            time.sleep(self.gateway_timeout_backoff)
            response = self._send(url, headers, stream)

        self._log_diagnostics(response)

        if response.status_code != 200:
            reason = response.reason or ""
            response.close()
            raise TransportError(
                f"HTTP request returns unexpected {response.status_code} code "
                f"({reason}) for {url}",
                url=url,
                status=response.status_code,
            )

        content_type = response.headers.get("Content-Type")
        if accepted and content_type and not _content_type_accepted(
            content_type, accepted, expect_archive
        ):
            response.close()
            raise TransportError(
                f"Unexpected content type '{content_type}' from {url}, "
                f"expected one of {accepted}",
                url=url,
                status=response.status_code,
            )
        return response

    def get_text(self, url: str, accept: Iterable[str] = ("text/plain",)) -> str:
        """GET a small document and return its body as text."""
        response = self.get(url, accept=accept)
        return response.text

    def get_json(self, url: str, accept: Iterable[str] = ("application/json",)):
        """GET a JSON document and return the decoded value."""
        response = self.get(url, accept=accept)
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {url}: {e}", url=url) from e

    def _send(self, url: str, headers: Dict[str, str], stream: bool):
        logger.debug(f"GET {url}")
        try:
            return self.session.get(
                url,
                headers=headers,
                stream=stream,
                timeout=self.timeout,
                allow_redirects=True,
            )
        except RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}", url=url) from e

    @staticmethod
    def _log_diagnostics(response: requests.Response) -> None:
        limits = {
            name: response.headers[name]
            for name in RATE_LIMIT_HEADERS
            if name in response.headers
        }
        if limits:
            logger.debug(f"Rate limit for {response.url}: {limits}")
            if limits.get("X-RateLimit-Remaining") == "0":
                logger.warning(
                    f"Rate limit exhausted for {response.url}, "
                    f"resets at {limits.get('X-RateLimit-Reset')}"
                )
        etag = response.headers.get("ETag")
        if etag:
            logger.debug(f"ETag: {etag}")


def _content_type_accepted(
    content_type: str, accepted: List[str], expect_archive: bool
) -> bool:
    mime = content_type.split(";", 1)[0].strip().lower()
    accepted_lower = {a.split(";", 1)[0].strip().lower() for a in accepted}
    if "*/*" in accepted_lower or mime in accepted_lower:
        return True
    return expect_archive and mime in ARCHIVE_MIME_TYPES


def download_to_file(
    transport: HttpTransport,
    url: str,
    destination: Path,
    accept: Iterable[str] = (),
    algorithms: Iterable[str] = (),
    cancel_event: Optional[threading.Event] = None,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
) -> DownloadOutcome:
    """
    Stream url into destination while computing digests.

    The destination is removed again on any failure, including
    cancellation, so a partial file is never left behind.

    Args:
        transport: HTTP transport to use
        url: Archive URL
        destination: File to write
        accept: Accepted content types
        algorithms: Digest algorithms to compute while streaming
        cancel_event: Checked before every chunk
        progress_callback: Optional callback for progress updates

    Returns:
        DownloadOutcome with the computed digests

    Raises:
        TransportError: If the request or the body stream fails
        AcquisitionCancelled: If cancel_event is set mid-download
    """
    pipeline = ChecksumPipeline(algorithms)
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Downloading {url}")
    response = transport.get(url, accept=accept, stream=True, expect_archive=True)

    content_length = response.headers.get("Content-Length")
    total_size = int(content_length) if content_length and content_length.isdigit() else 0
    start_time = time.monotonic()
    last_report = start_time

    try:
        with response, open(destination, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if cancel_event is not None and cancel_event.is_set():
                    raise AcquisitionCancelled(f"Download of {url} cancelled")
                if not chunk:
                    continue
                f.write(chunk)
                pipeline.update(chunk)

                now = time.monotonic()
                downloaded = pipeline.bytes_processed
                if progress_callback and (
                    now - last_report >= 0.5 or downloaded == total_size
                ):
                    progress_callback(
                        _progress(downloaded, total_size, now - start_time)
                    )
                    last_report = now
    except RequestException as e:
        destination.unlink(missing_ok=True)
        raise TransportError(f"Download of {url} failed: {e}", url=url) from e
    except BaseException:
        destination.unlink(missing_ok=True)
        raise

    size = pipeline.bytes_processed
    if total_size and size != total_size and not response.headers.get("Content-Encoding"):
        destination.unlink(missing_ok=True)
        raise TransportError(
            f"Download of {url} is truncated: got {size} of {total_size} bytes",
            url=url,
        )

    logger.info(f"Download complete: {destination} ({size} bytes)")
    return DownloadOutcome(
        path=destination,
        size=size,
        digests=pipeline.hexdigests(),
        etag=response.headers.get("ETag"),
        content_type=response.headers.get("Content-Type"),
    )


def _progress(downloaded: int, total: int, elapsed: float) -> DownloadProgress:
    speed = downloaded / elapsed if elapsed > 0 else 0
    remaining = total - downloaded if total > 0 else 0
    return DownloadProgress(
        bytes_downloaded=downloaded,
        total_bytes=total if total > 0 else downloaded,
        percentage=(downloaded / total * 100) if total > 0 else 0,
        speed_bps=speed,
        eta_seconds=remaining / speed if speed > 0 else 0,
    )


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576, 50)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.total_bytes > 0 and progress.percentage > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s "
            f"ETA: {progress.eta_seconds:.0f}s"
        )
    return f"{mb_downloaded:.1f} MB at {speed_mbps:.1f} MB/s"


__all__ = [
    "HttpTransport",
    "DownloadProgress",
    "DownloadOutcome",
    "download_to_file",
    "format_progress",
    "ARCHIVE_MIME_TYPES",
    "USER_AGENT",
]
