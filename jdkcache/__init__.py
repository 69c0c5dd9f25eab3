"""
jdkcache - acquire JDK distributions into a shared, lock-protected cache.

Typical use:

    from jdkcache import AcquisitionOrchestrator, AcquisitionRequest, AcquisitionSettings

    orchestrator = AcquisitionOrchestrator(AcquisitionSettings(offline=False))
    result = orchestrator.acquire(
        AcquisitionRequest("ADOPTIUM", {"version": "17*", "os": "linux", "arch": "x64"})
    )
    print(result.path)
"""

__version__ = "0.1.0"

from jdkcache.config import AcquisitionRequest, AcquisitionSettings, load_config
from jdkcache.acquisition import (
    AcquisitionOrchestrator,
    AcquisitionResult,
    AcquisitionState,
    acquire,
)
from jdkcache.core.exceptions import (
    AcquisitionCancelled,
    ArchiveFormatError,
    ConfigurationError,
    InstallError,
    IntegrityError,
    JdkCacheError,
    LockError,
    OfflineViolation,
    ResolutionFailure,
    TransportError,
)

__all__ = [
    "__version__",
    "AcquisitionRequest",
    "AcquisitionSettings",
    "load_config",
    "AcquisitionOrchestrator",
    "AcquisitionResult",
    "AcquisitionState",
    "acquire",
    "JdkCacheError",
    "ConfigurationError",
    "OfflineViolation",
    "ResolutionFailure",
    "TransportError",
    "IntegrityError",
    "ArchiveFormatError",
    "InstallError",
    "LockError",
    "AcquisitionCancelled",
]
