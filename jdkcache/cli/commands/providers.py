"""
Providers command implementation.

Lists the provider ids accepted by 'jdkcache acquire --provider'.
"""

from jdkcache.providers.registry import RESOLVERS


def run(args) -> int:
    for provider_id, resolver_class in RESOLVERS.items():
        summary = (resolver_class.__doc__ or "").strip().splitlines()[0]
        print(f"{provider_id.value:<14} {summary}")
    return 0
