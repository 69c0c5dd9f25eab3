"""
Acquisition settings and YAML configuration loading.

A configuration file has two optional top-level mappings:

    settings:
      cache_root: ~/.jdkcache
      offline: false
      connection_timeout: 60
      proxies: {https: "http://proxy:3128"}
      authorization: "token ghp_..."
      lock_timeout: null
    request:
      provider: ADOPTIUM
      attributes:
        version: "17*"
        os: linux
        arch: x64
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from jdkcache.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CACHE_ROOT_ENV = "JDKCACHE_HOME"
DEFAULT_CACHE_DIR_NAME = ".jdkcache"


def get_default_cache_root() -> Path:
    """
    Return the default cache root.

    ``$JDKCACHE_HOME`` wins when set, otherwise ``~/.jdkcache``.
    """
    override = os.environ.get(CACHE_ROOT_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / DEFAULT_CACHE_DIR_NAME


@dataclass
class AcquisitionSettings:
    """
    Settings shared by every acquisition.

    Attributes:
        cache_root: Directory holding cache entries and lock markers
        offline: Fail on a cache miss instead of touching the network
        connection_timeout: HTTP connect/read timeout in seconds
        proxies: requests-style proxy mapping, passed through unmodified
        authorization: Authorization header value, passed through unmodified
        verify_ssl: Verify TLS certificates
        lock_poll_interval: Seconds between lock attempts while waiting
        lock_timeout: Seconds to wait for a lock, None waits indefinitely
        gateway_timeout_backoff: Seconds before the retry after a 504
        keep_archive: Keep verified archives under <cache_root>/.archives
        catalog_page_size: Releases per catalog page
    """

    cache_root: Path = field(default_factory=get_default_cache_root)
    offline: bool = False
    connection_timeout: float = 60.0
    proxies: Dict[str, str] = field(default_factory=dict)
    authorization: Optional[str] = None
    verify_ssl: bool = True
    lock_poll_interval: float = 0.5
    lock_timeout: Optional[float] = None
    gateway_timeout_backoff: float = 10.0
    keep_archive: bool = False
    catalog_page_size: int = 40

    def __post_init__(self):
        self.cache_root = Path(self.cache_root).expanduser()
        if self.connection_timeout <= 0:
            raise ConfigurationError("connection_timeout must be positive")
        if self.lock_poll_interval <= 0:
            raise ConfigurationError("lock_poll_interval must be positive")
        if self.lock_timeout is not None and self.lock_timeout < 0:
            raise ConfigurationError("lock_timeout must not be negative")
        if self.catalog_page_size <= 0:
            raise ConfigurationError("catalog_page_size must be positive")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AcquisitionSettings":
        """
        Build settings from a mapping, rejecting unknown names.

        Raises:
            ConfigurationError: On unknown names or invalid values
        """
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown settings: {', '.join(unknown)}")
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e


@dataclass
class AcquisitionRequest:
    """A provider id plus its flat string attribute map."""

    provider: str
    attributes: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.provider or not str(self.provider).strip():
            raise ConfigurationError("Provider is required")
        self.provider = str(self.provider).strip().upper()
        self.attributes = {
            str(k).strip().lower(): "" if v is None else str(v)
            for k, v in (self.attributes or {}).items()
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AcquisitionRequest":
        data = dict(data or {})
        attributes = data.get("attributes") or {}
        if not isinstance(attributes, dict):
            raise ConfigurationError("request.attributes must be a mapping")
        return cls(provider=data.get("provider", ""), attributes=attributes)


def load_yaml_config(config_file: Path, required: bool = True) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        config_file: Path to YAML configuration file
        required: If True, raise an error if the file doesn't exist

    Returns:
        Configuration dictionary (empty if the file is missing and optional)

    Raises:
        ConfigurationError: If the file is required but missing, or the YAML
            is invalid or not a mapping
    """
    config_file = Path(config_file)
    if not config_file.exists():
        if required:
            raise ConfigurationError(f"Configuration file not found: {config_file}")
        logger.debug(f"Config file not found (optional): {config_file}")
        return {}

    logger.debug(f"Loading configuration from {config_file}")
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e

    config = config or {}
    if not isinstance(config, dict):
        raise ConfigurationError(f"{config_file} must contain a mapping")
    return config


def load_config(
    config_file: Path,
) -> Tuple[AcquisitionSettings, Optional[AcquisitionRequest]]:
    """
    Read settings and an optional request from a YAML file.

    Example:
        >>> settings, request = load_config(Path("jdkcache.yaml"))
    """
    config = load_yaml_config(config_file)
    unknown = sorted(set(config) - {"settings", "request"})
    if unknown:
        raise ConfigurationError(
            f"Unknown top-level keys in {config_file}: {', '.join(unknown)}"
        )
    settings = AcquisitionSettings.from_dict(config.get("settings"))
    request = (
        AcquisitionRequest.from_dict(config["request"]) if config.get("request") else None
    )
    return settings, request


__all__ = [
    "AcquisitionSettings",
    "AcquisitionRequest",
    "get_default_cache_root",
    "load_yaml_config",
    "load_config",
    "CACHE_ROOT_ENV",
]
