"""
Release resolution strategies.

Direct URL templates, paginated catalog search and local installations,
all behind the ReleaseResolver interface.
"""

from .base import (
    DownloadSpec,
    LocalInstallation,
    ReleaseCandidate,
    ReleaseResolver,
)
from .registry import ProviderId, create_resolver, provider_ids

__all__ = [
    "DownloadSpec",
    "LocalInstallation",
    "ReleaseCandidate",
    "ReleaseResolver",
    "ProviderId",
    "create_resolver",
    "provider_ids",
]
