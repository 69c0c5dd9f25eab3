"""
Centralized exception hierarchy for jdkcache.

Every failure raised by the acquisition engine derives from JdkCacheError,
so callers can catch one base class at the orchestrator boundary and still
tell the failure kinds apart when they need an actionable message.
"""

from typing import Dict, List, Optional


# ============================================================================
# Base Exceptions
# ============================================================================


class JdkCacheError(Exception):
    """Base exception for all jdkcache errors."""

    pass


class ConfigurationError(JdkCacheError):
    """Raised when a required attribute or setting is missing or invalid."""

    pass


class AcquisitionCancelled(JdkCacheError):
    """Raised when the caller's cancellation signal is observed."""

    pass


# ============================================================================
# Cache Exceptions
# ============================================================================


class OfflineViolation(JdkCacheError):
    """Raised on a cache miss while offline mode is active."""

    def __init__(self, cache_key: str, cache_root: str):
        self.cache_key = cache_key
        self.cache_root = cache_root
        super().__init__(
            f"Offline mode is active and '{cache_key}' is not cached in {cache_root}"
        )


class LockError(JdkCacheError):
    """Raised when a lock marker cannot be created or deleted."""

    def __init__(self, message: str, marker: Optional[str] = None):
        self.marker = marker
        super().__init__(message)


class InstallError(JdkCacheError):
    """Raised when a populated working directory cannot be renamed into place."""

    def __init__(
        self, message: str, source: Optional[str] = None, target: Optional[str] = None
    ):
        self.source = source
        self.target = target
        super().__init__(message)


# ============================================================================
# Resolution and Transport Exceptions
# ============================================================================


class ResolutionFailure(JdkCacheError):
    """Raised when no release matches the requested attributes."""

    def __init__(
        self,
        provider: str,
        attributes: Dict[str, str],
        found: Optional[List[str]] = None,
        reason: Optional[str] = None,
    ):
        self.provider = provider
        self.attributes = dict(attributes)
        self.found = list(found or [])
        searched = ", ".join(f"{k}='{v}'" for k, v in sorted(self.attributes.items()))
        msg = f"{provider}: can't find release for {searched}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class TransportError(JdkCacheError):
    """Raised on network failure or an unexpected HTTP response."""

    def __init__(
        self, message: str, url: Optional[str] = None, status: Optional[int] = None
    ):
        self.url = url
        self.status = status
        super().__init__(message)


class IntegrityError(JdkCacheError):
    """Raised when a computed digest differs from the expected one."""

    def __init__(
        self, algorithm: str, expected: str, computed: str, path: Optional[str] = None
    ):
        self.algorithm = algorithm
        self.expected = expected
        self.computed = computed
        self.path = path
        msg = (
            f"{algorithm} digest is not correct, expected '{expected}' "
            f"but calculated '{computed}'"
        )
        if path:
            msg += f" for {path}"
        super().__init__(msg)


# ============================================================================
# Archive Exceptions
# ============================================================================


class ArchiveFormatError(JdkCacheError):
    """Raised for unrecognized containers or corrupt entry streams."""

    def __init__(self, message: str, archive: Optional[str] = None):
        self.archive = archive
        super().__init__(message)


class InsecureArchiveError(ArchiveFormatError):
    """Raised when an entry would be written outside the destination."""

    pass


__all__ = [
    "JdkCacheError",
    "ConfigurationError",
    "AcquisitionCancelled",
    "OfflineViolation",
    "LockError",
    "InstallError",
    "ResolutionFailure",
    "TransportError",
    "IntegrityError",
    "ArchiveFormatError",
    "InsecureArchiveError",
]
