"""
Deterministic cache key derivation.

A cache key names the directory an acquired distribution is installed into.
Keys are built from a provider id plus an ordered set of named attributes:

- values are trimmed and lower-cased before use
- absent optional attributes are omitted rather than rendered as empty text
- filesystem-reserved and control characters are replaced with '.'
- a short digest of the attribute names and values is appended, so values
  that happen to contain the separator never merge two distinct requests
"""

import hashlib
import re
from typing import List, Optional, Tuple

from jdkcache.core.exceptions import ConfigurationError

RESERVED_CHARACTERS = '\\/:*?"<>|'
REPLACEMENT = "."
SEPARATOR = "_"
MAX_READABLE_LENGTH = 160

_WHITESPACE = re.compile(r"\s")


def escape_file_name(text: str) -> str:
    """
    Make text safe for use as a single path segment.

    Reserved characters, whitespace and control characters are replaced
    with '.', never dropped, so 'a:b' and 'ab' stay distinct.

    Example:
        >>> escape_file_name('jdk 17:x64')
        'jdk.17.x64'
    """
    result = []
    for ch in text:
        if ch in RESERVED_CHARACTERS or _WHITESPACE.match(ch) or _is_control(ch):
            result.append(REPLACEMENT)
        else:
            result.append(ch)
    return "".join(result)


def _is_control(ch: str) -> bool:
    code = ord(ch)
    return code < 0x20 or 0x7F <= code <= 0x9F


class CacheKeyBuilder:
    """
    Builds a filesystem-safe cache key for one provider.

    Example:
        >>> key = (
        ...     CacheKeyBuilder("ADOPTIUM")
        ...     .add("version", "17.0.4+7")
        ...     .add("os", "Linux")
        ...     .add("c_lib", None)
        ...     .build()
        ... )
    """

    def __init__(self, provider_id: str):
        provider_id = (provider_id or "").strip()
        if not provider_id:
            raise ConfigurationError("Provider id is required for a cache key")
        self.provider_id = provider_id.upper()
        self._attributes: List[Tuple[str, str, bool]] = []

    def add(
        self,
        name: str,
        value: Optional[str],
        required: bool = False,
        readable: bool = True,
    ) -> "CacheKeyBuilder":
        """
        Append a named attribute.

        Args:
            name: Attribute name (part of the digest, not of the readable key)
            value: Attribute value; None or blank means absent
            required: Reject absent values instead of omitting them
            readable: Show the value in the key; when False it only feeds
                the digest (long values such as URLs)

        Raises:
            ConfigurationError: If a required value is absent
        """
        normalized = "" if value is None else str(value).strip().lower()
        if not normalized:
            if required:
                raise ConfigurationError(
                    f"Attribute '{name}' is required for {self.provider_id}"
                )
            return self
        self._attributes.append((name.strip().lower(), normalized, readable))
        return self

    def build(self) -> str:
        """Return the cache key for the attributes added so far."""
        parts = [escape_file_name(self.provider_id)]
        parts.extend(
            escape_file_name(value) for _, value, shown in self._attributes if shown
        )
        readable = SEPARATOR.join(parts)[:MAX_READABLE_LENGTH]

        canonical = "\n".join(f"{name}={value}" for name, value, _ in self._attributes)
        digest = hashlib.sha1(
            f"{self.provider_id}\n{canonical}".encode("utf-8")
        ).hexdigest()[:8]
        return f"{readable}{SEPARATOR}{digest}"


__all__ = ["CacheKeyBuilder", "escape_file_name"]
