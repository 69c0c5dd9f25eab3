"""
Core building blocks of the acquisition engine.

This package contains the modules the resolvers and the orchestrator are
built from: cache keys, wildcard matching, marker locks, checksums, HTTP
downloads and archive handling.
"""

from .cache_key import CacheKeyBuilder, escape_file_name
from .wildcard import WildcardMatcher
from .locking import CacheLock
from .verification import ChecksumPipeline, normalize_checksum
from .archive import ArchiveExtractor, ArchiveInspector, ArchiveType

__all__ = [
    "CacheKeyBuilder",
    "escape_file_name",
    "WildcardMatcher",
    "CacheLock",
    "ChecksumPipeline",
    "normalize_checksum",
    "ArchiveExtractor",
    "ArchiveInspector",
    "ArchiveType",
]
