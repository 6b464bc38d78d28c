"""Token to reference-NFT metadata resolution with an injected cache.

Every fungible token ``t/<hash>/...`` shares its display metadata with the
reference NFT ``n/<hash>``. :class:`ReferenceResolver` looks that NFT up once
per content hash and keeps the result in a :class:`ReferenceMetadataCache`.
Concurrent callers asking for the same hash share a single in-flight fetch.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Protocol

from charms_explorer.normalization.identifiers import (
    content_hash,
    identifier_prefix,
    record_identifier,
    reference_identifier_for_token,
)
from charms_explorer.normalization.reference_data import NFT_PREFIX
from charms_explorer.normalization.schema import ReferenceMetadata
from charms_explorer.normalization.spell_parser import parse_spell_metadata
from charms_explorer.observability import Observability
from charms_explorer.services.indexer_client import IndexerClientError

LOGGER = logging.getLogger(__name__)

_REFERENCE_FIELDS = tuple(ReferenceMetadata.model_fields)


class ReferenceSource(Protocol):
    """Subset of the indexer client the resolver depends on."""

    async def get_reference_nft(self, content_hash: str) -> dict[str, Any] | None: ...

    async def get_charm(self, charm_id: str) -> dict[str, Any] | None: ...

    async def list_reference_assets(self) -> list[dict[str, Any]]: ...


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of cache occupancy and lookup counters."""

    size: int
    hits: int
    misses: int


def reference_from_record(record: Mapping[str, Any]) -> ReferenceMetadata:
    """Build :class:`ReferenceMetadata` from an indexer asset or charm record.

    Record columns win; gaps are filled from the record's spell payload.
    """

    spell = parse_spell_metadata(record)
    columns = {field: record.get(field) for field in _REFERENCE_FIELDS}
    columns["app_id"] = columns["app_id"] or record_identifier(record)
    base = ReferenceMetadata.model_validate(columns)
    return merge_reference(
        base,
        ReferenceMetadata(
            name=spell.name,
            symbol=spell.ticker,
            description=spell.description,
            image_url=spell.image,
            url=spell.url,
            total_supply=spell.supply_limit,
            decimals=spell.decimals,
        ),
    )


def merge_reference(base: ReferenceMetadata | None, fallback: ReferenceMetadata | None) -> ReferenceMetadata | None:
    """Return ``base`` with its missing fields taken from ``fallback``."""

    if base is None:
        return fallback
    if fallback is None:
        return base
    update = {
        field: getattr(fallback, field)
        for field in _REFERENCE_FIELDS
        if getattr(base, field) is None and getattr(fallback, field) is not None
    }
    return base.model_copy(update=update) if update else base


class ReferenceMetadataCache:
    """In-memory store of reference metadata keyed by content hash.

    Entries are complete :class:`ReferenceMetadata` objects or absent; a
    failed lookup never leaves a placeholder behind.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, ReferenceMetadata] = {}
        self._hits = 0
        self._misses = 0
        self._generation = 0

    @property
    def generation(self) -> int:
        """Number of times the cache has been cleared."""

        return self._generation

    def get(self, content_hash: str) -> ReferenceMetadata | None:
        entry = self._entries.get(content_hash)
        if entry is None:
            self._misses += 1
            return None
        self._hits += 1
        return entry

    def put(self, content_hash: str, metadata: ReferenceMetadata) -> None:
        if not content_hash:
            raise ValueError("content_hash must be a non-empty string")
        if not isinstance(metadata, ReferenceMetadata):
            raise TypeError(f"Expected ReferenceMetadata, got {type(metadata).__name__}")
        self._entries[content_hash] = metadata

    def contains(self, content_hash: str) -> bool:
        return content_hash in self._entries

    def __contains__(self, content_hash: object) -> bool:
        return content_hash in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        """Drop every entry, reset the counters and start a new generation."""

        self._entries.clear()
        self._hits = 0
        self._misses = 0
        self._generation += 1

    def stats(self) -> CacheStats:
        return CacheStats(size=len(self._entries), hits=self._hits, misses=self._misses)

    def preload(self, assets: Iterable[Mapping[str, Any]]) -> int:
        """Cache every ``n/`` asset of an already-fetched collection.

        Returns:
            Number of entries written.
        """

        loaded = 0
        for asset in assets:
            if not isinstance(asset, Mapping):
                continue
            identifier = record_identifier(asset)
            hash_part = content_hash(identifier)
            if identifier_prefix(identifier) != NFT_PREFIX or not hash_part:
                continue
            self.put(hash_part, reference_from_record(asset))
            loaded += 1
        LOGGER.debug("Preloaded %d reference NFTs", loaded)
        return loaded


class ReferenceResolver:
    """Resolve token identifiers to their reference-NFT metadata."""

    def __init__(
        self,
        client: ReferenceSource,
        cache: ReferenceMetadataCache,
        observability: Observability | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self._observability = observability
        self._inflight: Dict[str, asyncio.Future] = {}

    def _count(self, metric: str) -> None:
        if self._observability is not None:
            self._observability.increment(metric)

    def is_inflight(self, content_hash: str) -> bool:
        return content_hash in self._inflight

    def reset(self) -> None:
        """Clear the cache and forget in-flight fetches.

        Fetches already running still answer their own callers but no longer
        write to the cache; later callers start fresh lookups.
        """

        self.cache.clear()
        self._inflight.clear()

    async def resolve(self, token_identifier: str | None) -> ReferenceMetadata | None:
        """Return reference metadata for a ``t/`` identifier.

        Non-token identifiers resolve to ``None`` without any network I/O.
        Failures are logged and resolve to ``None``; nothing is cached for
        them.
        """

        reference_id = reference_identifier_for_token(token_identifier)
        if reference_id is None:
            return None
        return await self.fetch_by_hash(content_hash(reference_id))

    async def fetch_by_hash(self, content_hash: str | None) -> ReferenceMetadata | None:
        if not content_hash:
            return None
        cached = self.cache.get(content_hash)
        if cached is not None:
            self._count("reference_cache.hit")
            return cached
        self._count("reference_cache.miss")

        pending = self._inflight.get(content_hash)
        if pending is not None:
            return await asyncio.shield(pending)

        future = asyncio.get_running_loop().create_future()
        self._inflight[content_hash] = future
        generation = self.cache.generation
        metadata: ReferenceMetadata | None = None
        try:
            try:
                metadata = await self._fetch(content_hash)
            except Exception:
                self._count("reference_cache.fetch_failed")
                LOGGER.exception("Reference NFT resolution failed for %s", content_hash[:16])
            # Skip the write when the cache was cleared mid-fetch.
            if metadata is not None and self.cache.generation == generation:
                self.cache.put(content_hash, metadata)
        finally:
            # Waiters get None when this caller is cancelled.
            if not future.done():
                future.set_result(metadata)
            if self._inflight.get(content_hash) is future:
                del self._inflight[content_hash]
        return metadata

    async def _fetch(self, content_hash: str) -> ReferenceMetadata | None:
        self._count("reference_cache.fetch")
        timer = self._observability.timer("reference_cache.fetch_ms") if self._observability else nullcontext()
        with timer:
            metadata = await self._lookup(content_hash)
        if metadata is None:
            self._count("reference_cache.fetch_failed")
            LOGGER.info("No reference NFT found for %s", content_hash[:16])
        return metadata

    async def _lookup(self, content_hash: str) -> ReferenceMetadata | None:
        metadata: ReferenceMetadata | None = None
        try:
            direct = await self.client.get_reference_nft(content_hash)
        except IndexerClientError as exc:
            LOGGER.warning("Reference NFT lookup failed for %s: %s", content_hash[:16], exc)
            direct = None
        if direct:
            metadata = reference_from_record(direct)

        if metadata is None or not metadata.image_url:
            try:
                record = await self.client.get_charm(f"{NFT_PREFIX}/{content_hash}")
            except IndexerClientError as exc:
                LOGGER.warning("Reference NFT charm lookup failed for %s: %s", content_hash[:16], exc)
                record = None
            if record:
                metadata = merge_reference(metadata, reference_from_record(record))
        return metadata

    def cached_for_token(self, token_identifier: str | None) -> ReferenceMetadata | None:
        """Return cached metadata for a token without fetching."""

        reference_id = reference_identifier_for_token(token_identifier)
        if reference_id is None:
            return None
        return self.cache.get(content_hash(reference_id) or "")

    async def image_for_token(self, token_identifier: str | None) -> str | None:
        metadata = await self.resolve(token_identifier)
        return metadata.image_url if metadata else None

    async def prefetch(self, token_identifiers: Iterable[str | None]) -> int:
        """Resolve every uncached hash among ``token_identifiers`` concurrently.

        Returns:
            Number of distinct hashes that were fetched.
        """

        hashes: list[str] = []
        for token_identifier in token_identifiers:
            reference_id = reference_identifier_for_token(token_identifier)
            hash_part = content_hash(reference_id)
            if hash_part and hash_part not in hashes and not self.cache.contains(hash_part):
                hashes.append(hash_part)
        if hashes:
            await asyncio.gather(*(self.fetch_by_hash(hash_part) for hash_part in hashes))
        return len(hashes)

    async def preload_from_indexer(self) -> int:
        """Warm the cache from one asset listing call."""

        try:
            assets = await self.client.list_reference_assets()
        except IndexerClientError as exc:
            LOGGER.warning("Reference NFT preload failed: %s", exc)
            return 0
        return self.cache.preload(assets)


__all__ = [
    "CacheStats",
    "ReferenceMetadataCache",
    "ReferenceResolver",
    "ReferenceSource",
    "merge_reference",
    "reference_from_record",
]
