"""
Multi-algorithm digest computation and checksum verification.

This module provides:
- ChecksumPipeline: updates any number of digests from one byte stream
- Normalized comparison of expected vs. computed digests
- Parsing of published checksum documents (bare digest, "digest  file"
  lines, SHA256SUMS style listings)
- ETag cross-check against a computed MD5

Checksum publishers format their files differently (trailing file names,
upper or lower case, whitespace), so both sides of every comparison are
normalized: non-alphanumeric characters are stripped and the rest is
upper-cased.
"""

import hashlib
import logging
import re
import secrets
from pathlib import Path
from typing import Dict, Iterable, Optional

from jdkcache.core.exceptions import ConfigurationError, IntegrityError

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ("sha256", "sha384", "sha512", "sha1", "md5", "md2")

ETAG_PATTERN = re.compile(r'^"?([a-fA-F0-9]{32}).*"?$')
_LEADING_DIGEST = re.compile(r"^\s*([a-zA-Z0-9]+)")
_SUMS_LINE = re.compile(r"^\s*(\S+)\s+\*?(\S+)\s*$")


def normalize_algorithm(name: str) -> str:
    """Map spellings such as 'SHA-256' to hashlib names ('sha256')."""
    return name.strip().lower().replace("-", "").replace("_", "")


def normalize_checksum(value: str) -> str:
    """
    Normalize a checksum for comparison.

    Example:
        >>> normalize_checksum(" ab:cd-EF ")
        'ABCDEF'
    """
    return "".join(ch for ch in value if ch.isascii() and ch.isalnum()).upper()


def checksums_equal(expected: str, computed: str) -> bool:
    """Compare two checksums after normalization, in constant time."""
    a = normalize_checksum(expected)
    b = normalize_checksum(computed)
    return secrets.compare_digest(a.encode("ascii"), b.encode("ascii"))


def assert_checksum(
    algorithm: str, expected: str, computed: str, path: Optional[Path] = None
) -> None:
    """
    Raise IntegrityError unless expected and computed digests match.

    Raises:
        IntegrityError: On mismatch
    """
    if not checksums_equal(expected, computed):
        raise IntegrityError(
            algorithm,
            normalize_checksum(expected),
            normalize_checksum(computed),
            str(path) if path else None,
        )
    logger.info(f"{algorithm.upper()} digest is OK")


class ChecksumPipeline:
    """
    Updates several digests in parallel from a single byte stream.

    Algorithms are fixed at construction; zero algorithms is allowed and
    turns the pipeline into a pass-through.

    Example:
        >>> pipeline = ChecksumPipeline(["sha256", "md5"])
        >>> pipeline.update(b"data")
        >>> sorted(pipeline.hexdigests())
        ['md5', 'sha256']

    Raises:
        ConfigurationError: If an algorithm is unknown or not provided by
            the local hashlib/OpenSSL build (MD2 usually is not)
    """

    def __init__(self, algorithms: Iterable[str] = ()):
        self._digests: Dict[str, "hashlib._Hash"] = {}
        for name in algorithms:
            algorithm = normalize_algorithm(name)
            if algorithm in self._digests:
                continue
            if algorithm not in SUPPORTED_ALGORITHMS:
                raise ConfigurationError(f"Unsupported digest algorithm: {name}")
            try:
                self._digests[algorithm] = hashlib.new(algorithm)
            except ValueError as e:
                raise ConfigurationError(
                    f"Digest algorithm '{algorithm}' is not available "
                    "in this Python build"
                ) from e
        self.bytes_processed = 0

    @property
    def algorithms(self):
        return tuple(self._digests)

    def update(self, data: bytes) -> None:
        for digest in self._digests.values():
            digest.update(data)
        self.bytes_processed += len(data)

    def hexdigest(self, algorithm: str) -> str:
        return self._digests[normalize_algorithm(algorithm)].hexdigest()

    def hexdigests(self) -> Dict[str, str]:
        return {name: digest.hexdigest() for name, digest in self._digests.items()}

    def verify(self, expected: Dict[str, str], path: Optional[Path] = None) -> None:
        """
        Check every expected digest against the computed one.

        Args:
            expected: Algorithm -> expected value
            path: File the digests were computed for (error context only)

        Raises:
            IntegrityError: On the first mismatch
        """
        for name, value in expected.items():
            assert_checksum(name, value, self.hexdigest(name), path)


def extract_digest(text: str, file_name: Optional[str] = None) -> Optional[str]:
    """
    Pull a digest out of a published checksum document.

    Handles a bare digest, "digest  file-name" and multi-line listings.
    When file_name is given and the document lists several files, the
    line naming that file wins.

    Args:
        text: Document body
        file_name: Archive file name to look up in listings

    Returns:
        The digest text, or None if nothing usable was found
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if file_name is not None:
        listing = parse_checksum_listing(text)
        if file_name in listing:
            return listing[file_name]
        if len(lines) > 1:
            return None
    if not lines:
        return None
    match = _LEADING_DIGEST.match(lines[0])
    return match.group(1) if match else None


def parse_checksum_listing(text: str) -> Dict[str, str]:
    """
    Parse "digest  file-name" lines into file-name -> digest.

    A leading '*' on the file name (binary mode marker) is dropped. Names
    containing path separators or parent references are skipped.
    """
    result: Dict[str, str] = {}
    for line_num, line in enumerate(text.splitlines(), 1):
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        match = _SUMS_LINE.match(line)
        if not match:
            continue
        digest, name = match.group(1), match.group(2)
        if ".." in name or "/" in name or "\\" in name:
            logger.warning(f"Skipping suspicious file name at line {line_num}: {name}")
            continue
        result[name] = digest
    return result


def md5_from_etag(etag: Optional[str]) -> Optional[str]:
    """Return the MD5 embedded in an ETag header, if it carries one."""
    if not etag:
        return None
    match = ETAG_PATTERN.match(etag.strip())
    return match.group(1) if match else None


__all__ = [
    "ChecksumPipeline",
    "SUPPORTED_ALGORITHMS",
    "normalize_algorithm",
    "normalize_checksum",
    "checksums_equal",
    "assert_checksum",
    "extract_digest",
    "parse_checksum_listing",
    "md5_from_etag",
]
