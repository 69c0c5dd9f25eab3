"""
Closed registry of resolution strategies.

Each ProviderId maps to exactly one resolver class; new providers are added
here explicitly.
"""

from enum import Enum
from typing import Dict, List, Optional, Type

from jdkcache.core.download import HttpTransport
from jdkcache.core.exceptions import ConfigurationError
from jdkcache.core.platform import PlatformInfo
from jdkcache.providers.base import ReleaseResolver
from jdkcache.providers.catalog import (
    DEFAULT_PAGE_SIZE,
    AdoptiumCatalogResolver,
    CatalogResolver,
    GraalVmCatalogResolver,
    LibericaCatalogResolver,
    SapMachineCatalogResolver,
)
from jdkcache.providers.direct import (
    AdoptiumApiResolver,
    CorrettoResolver,
    MicrosoftResolver,
    UrlResolver,
)
from jdkcache.providers.local import LocalResolver


class ProviderId(str, Enum):
    """Identifiers accepted in requests."""

    URL = "URL"
    ADOPTIUM_API = "ADOPTIUM_API"
    CORRETTO = "CORRETTO"
    MICROSOFT = "MICROSOFT"
    ADOPTIUM = "ADOPTIUM"
    LIBERICA = "LIBERICA"
    SAPMACHINE = "SAPMACHINE"
    GRAALVM = "GRAALVM"
    LOCAL = "LOCAL"

    @classmethod
    def parse(cls, value: str) -> "ProviderId":
        try:
            return cls(value.strip().upper())
        except ValueError:
            known = ", ".join(p.value for p in cls)
            raise ConfigurationError(
                f"Unknown provider '{value}', expected one of: {known}"
            ) from None


RESOLVERS: Dict[ProviderId, Type[ReleaseResolver]] = {
    ProviderId.URL: UrlResolver,
    ProviderId.ADOPTIUM_API: AdoptiumApiResolver,
    ProviderId.CORRETTO: CorrettoResolver,
    ProviderId.MICROSOFT: MicrosoftResolver,
    ProviderId.ADOPTIUM: AdoptiumCatalogResolver,
    ProviderId.LIBERICA: LibericaCatalogResolver,
    ProviderId.SAPMACHINE: SapMachineCatalogResolver,
    ProviderId.GRAALVM: GraalVmCatalogResolver,
    ProviderId.LOCAL: LocalResolver,
}


def create_resolver(
    provider: str,
    attributes: Dict[str, str],
    transport: Optional[HttpTransport] = None,
    platform: Optional[PlatformInfo] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> ReleaseResolver:
    """
    Instantiate the resolver registered for a provider id.

    Raises:
        ConfigurationError: If the provider id is unknown

    Example:
        >>> resolver = create_resolver("adoptium", {"version": "17*"})
        >>> resolver.cache_key()
    """
    resolver_class = RESOLVERS[ProviderId.parse(provider)]
    if issubclass(resolver_class, CatalogResolver):
        return resolver_class(attributes, transport, platform, page_size=page_size)
    return resolver_class(attributes, transport, platform)


def provider_ids() -> List[str]:
    return [p.value for p in ProviderId]


__all__ = ["ProviderId", "RESOLVERS", "create_resolver", "provider_ids"]
