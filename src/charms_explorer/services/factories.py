"""Factory helpers that instantiate core services based on configuration.

These helpers centralize the wiring between :mod:`charms_explorer.settings`
and the services: the indexer client, the reference cache and resolver, and
the network selection that keeps per-network state consistent.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from charms_explorer.observability import get_observability
from charms_explorer.services.indexer_client import IndexerClient
from charms_explorer.services.network import NetworkSelection
from charms_explorer.services.reference_cache import ReferenceMetadataCache, ReferenceResolver
from charms_explorer.settings import Settings, get_settings


@dataclass
class ExplorerServices:
    """Bundle of services sharing one client, cache and network selection."""

    settings: Settings
    client: IndexerClient
    cache: ReferenceMetadataCache
    resolver: ReferenceResolver
    network: NetworkSelection

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "ExplorerServices":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def build_indexer_client(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> IndexerClient:
    """Return an :class:`IndexerClient` pointed at the configured indexer."""

    resolved = settings or get_settings()
    return IndexerClient(settings=resolved, http_client=http_client)


def build_network_selection(settings: Settings | None = None) -> NetworkSelection:
    resolved = settings or get_settings()
    return NetworkSelection(initial=resolved.indexer.network)


def build_explorer_services(
    settings: Settings | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> ExplorerServices:
    """Wire the client, cache, resolver and network selection together.

    The resolver is reset whenever the selected network changes, so fetches
    started on the old network never repopulate the cache. The client follows
    the new network for subsequent listing calls.
    """

    resolved = settings or get_settings()
    client = build_indexer_client(resolved, http_client=http_client)
    cache = ReferenceMetadataCache()
    observability = get_observability(component="reference_cache", settings=resolved)
    resolver = ReferenceResolver(client, cache, observability=observability)
    network = build_network_selection(resolved)

    def _on_network_change(selected: str) -> None:
        dropped = len(cache)
        resolver.reset()
        client.network = selected
        observability.emit_event("network_changed", network=selected, dropped_references=dropped)

    network.subscribe(_on_network_change)
    return ExplorerServices(settings=resolved, client=client, cache=cache, resolver=resolver, network=network)


__all__ = [
    "ExplorerServices",
    "build_explorer_services",
    "build_indexer_client",
    "build_network_selection",
]
