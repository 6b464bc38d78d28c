"""Unit tests for reference-NFT resolution and caching."""

import asyncio
import logging
from contextlib import contextmanager

import pytest

from charms_explorer.normalization.schema import ReferenceMetadata
from charms_explorer.services.indexer_client import IndexerClientError
from charms_explorer.services.reference_cache import (
    ReferenceMetadataCache,
    ReferenceResolver,
    reference_from_record,
)


class _StubClient:
    """Stub indexer client recording every call."""

    def __init__(self, references=None, charms=None, assets=None, fail=False, error=None):
        self.references = references or {}
        self.charms = charms or {}
        self.assets = assets or []
        self.fail = fail
        self.error = error
        self.reference_calls = []
        self.charm_calls = []
        self.list_calls = 0
        self.release = asyncio.Event()
        self.release.set()

    async def get_reference_nft(self, content_hash):
        self.reference_calls.append(content_hash)
        await self.release.wait()
        if self.error is not None:
            raise self.error
        if self.fail:
            raise IndexerClientError("indexer down")
        return self.references.get(content_hash)

    async def get_charm(self, charm_id):
        self.charm_calls.append(charm_id)
        if self.fail:
            raise IndexerClientError("indexer down")
        return self.charms.get(charm_id)

    async def list_reference_assets(self):
        self.list_calls += 1
        if self.fail:
            raise IndexerClientError("indexer down")
        return self.assets


class _RecordingObservability:
    def __init__(self):
        self.counters = []
        self.timings = []

    def increment(self, metric, *, value=1.0, tags=None):
        self.counters.append(metric)

    def record_timing(self, metric, value_ms, *, tags=None):
        self.timings.append(metric)

    @contextmanager
    def timer(self, metric, *, tags=None):
        try:
            yield
        finally:
            self.record_timing(metric, 0.0, tags=tags)


def test_cache_get_put_and_stats():
    cache = ReferenceMetadataCache()
    metadata = ReferenceMetadata(name="Ref")

    assert cache.get("H") is None
    cache.put("H", metadata)

    assert cache.contains("H")
    assert "H" in cache
    assert cache.get("H") is metadata
    stats = cache.stats()
    assert (stats.size, stats.hits, stats.misses) == (1, 1, 1)

    cache.clear()
    assert len(cache) == 0
    assert cache.stats().hits == 0


def test_cache_rejects_incomplete_entries():
    cache = ReferenceMetadataCache()

    with pytest.raises(TypeError):
        cache.put("H", {"name": "raw dict"})
    with pytest.raises(ValueError):
        cache.put("", ReferenceMetadata())


def test_preload_caches_only_nft_assets():
    cache = ReferenceMetadataCache()
    assets = [
        {"app_id": "n/AAA/tx:0", "name": "Alpha", "symbol": "ALP", "image_url": "https://a"},
        {"app_id": "t/AAA/tx:1", "name": "Token row"},
        {"app_id": "n/BBB/tx:0", "name": "Beta", "total_supply": "21000000", "decimals": "8"},
        "junk",
    ]

    assert cache.preload(assets) == 2
    assert cache.get("AAA").symbol == "ALP"
    beta = cache.get("BBB")
    assert beta.total_supply == 21000000
    assert beta.decimals == 8


def test_reference_from_record_fills_gaps_from_spell():
    record = {
        "app_id": "n/AAA/tx:0",
        "name": "Column name",
        "data": {"native_data": {"tx": {"outs": [{"0": {"name": "Spell", "image": "https://img", "ticker": "SP"}}]}}},
    }

    metadata = reference_from_record(record)

    assert metadata.name == "Column name"
    assert metadata.image_url == "https://img"
    assert metadata.symbol == "SP"
    assert metadata.app_id == "n/AAA/tx:0"


@pytest.mark.anyio
async def test_concurrent_resolves_share_one_fetch():
    client = _StubClient(references={"H": {"name": "Ref", "image_url": "https://img"}})
    client.release.clear()
    resolver = ReferenceResolver(client, ReferenceMetadataCache())

    first = asyncio.create_task(resolver.resolve("t/H/tx1:0"))
    second = asyncio.create_task(resolver.resolve("t/H/tx2:1"))
    await asyncio.sleep(0)
    assert resolver.is_inflight("H")
    client.release.set()
    results = await asyncio.gather(first, second)

    assert client.reference_calls == ["H"]
    assert results[0] is results[1]
    assert results[0] is resolver.cache.get("H")
    assert not resolver.is_inflight("H")


@pytest.mark.anyio
async def test_cached_resolve_performs_no_io():
    client = _StubClient()
    cache = ReferenceMetadataCache()
    cached = ReferenceMetadata(name="Cached")
    cache.put("H", cached)
    resolver = ReferenceResolver(client, cache)

    assert await resolver.resolve("t/H/tx:0") is cached
    assert resolver.cached_for_token("t/H/other:3") is cached
    assert client.reference_calls == []


@pytest.mark.anyio
async def test_non_token_identifiers_skip_network():
    client = _StubClient()
    resolver = ReferenceResolver(client, ReferenceMetadataCache())

    assert await resolver.resolve("n/H/tx:0") is None
    assert await resolver.resolve(None) is None
    assert resolver.cached_for_token("b/H/tx:0") is None
    assert client.reference_calls == []


@pytest.mark.anyio
async def test_falls_back_to_reference_charm_when_image_missing():
    client = _StubClient(
        references={"H": {"name": "Direct"}},
        charms={"n/H": {"app_id": "n/H/tx:0", "data": {"name": "Charm", "image": "https://fallback"}}},
    )
    observability = _RecordingObservability()
    resolver = ReferenceResolver(client, ReferenceMetadataCache(), observability=observability)

    metadata = await resolver.resolve("t/H/tx:0")

    assert metadata.name == "Direct"
    assert metadata.image_url == "https://fallback"
    assert client.charm_calls == ["n/H"]
    assert await resolver.image_for_token("t/H/tx:9") == "https://fallback"
    assert observability.counters.count("reference_cache.fetch") == 1
    assert "reference_cache.hit" in observability.counters
    assert observability.timings == ["reference_cache.fetch_ms"]


@pytest.mark.anyio
async def test_failures_resolve_to_none_and_cache_nothing():
    client = _StubClient(fail=True)
    observability = _RecordingObservability()
    resolver = ReferenceResolver(client, ReferenceMetadataCache(), observability=observability)

    assert await resolver.resolve("t/H/tx:0") is None
    assert len(resolver.cache) == 0
    assert "reference_cache.fetch_failed" in observability.counters
    assert await resolver.preload_from_indexer() == 0


@pytest.mark.anyio
async def test_prefetch_fetches_each_uncached_hash_once():
    client = _StubClient(references={"A": {"name": "A"}, "B": {"name": "B"}})
    cache = ReferenceMetadataCache()
    cache.put("C", ReferenceMetadata(name="C"))
    resolver = ReferenceResolver(client, cache)

    fetched = await resolver.prefetch(["t/A/1:0", "t/A/2:0", "t/B/1:0", "t/C/1:0", "n/D/1:0", None])

    assert fetched == 2
    assert sorted(client.reference_calls) == ["A", "B"]
    assert cache.contains("A") and cache.contains("B")


@pytest.mark.anyio
async def test_preload_from_indexer_uses_one_listing_call():
    client = _StubClient(assets=[{"app_id": "n/A/tx:0", "name": "A"}, {"app_id": "n/B/tx:0", "name": "B"}])
    resolver = ReferenceResolver(client, ReferenceMetadataCache())

    assert await resolver.preload_from_indexer() == 2
    assert client.list_calls == 1
    assert (await resolver.resolve("t/B/tx:0")).name == "B"
    assert client.reference_calls == []


@pytest.mark.anyio
async def test_cancelled_leader_releases_waiters_with_none():
    client = _StubClient(references={"H": {"name": "Ref", "image_url": "https://img"}})
    client.release.clear()
    resolver = ReferenceResolver(client, ReferenceMetadataCache())

    leader = asyncio.create_task(resolver.resolve("t/H/tx1:0"))
    await asyncio.sleep(0)
    waiter = asyncio.create_task(resolver.resolve("t/H/tx2:0"))
    await asyncio.sleep(0)
    leader.cancel()

    assert await waiter is None
    with pytest.raises(asyncio.CancelledError):
        await leader
    assert not resolver.is_inflight("H")
    assert len(resolver.cache) == 0


@pytest.mark.anyio
async def test_unexpected_source_error_resolves_to_none(caplog):
    client = _StubClient(error=KeyError("malformed payload"))
    client.release.clear()
    observability = _RecordingObservability()
    resolver = ReferenceResolver(client, ReferenceMetadataCache(), observability=observability)

    with caplog.at_level(logging.ERROR, logger="charms_explorer.services.reference_cache"):
        tasks = [asyncio.create_task(resolver.resolve(token)) for token in ("t/H/tx1:0", "t/H/tx2:0")]
        await asyncio.sleep(0)
        client.release.set()
        results = await asyncio.gather(*tasks)

    assert results == [None, None]
    assert client.reference_calls == ["H"]
    assert len(resolver.cache) == 0
    assert "reference_cache.fetch_failed" in observability.counters
    assert any("resolution failed" in record.getMessage() for record in caplog.records)


@pytest.mark.anyio
async def test_clear_during_fetch_drops_late_result():
    client = _StubClient(references={"H": {"name": "Ref", "image_url": "https://img"}})
    client.release.clear()
    resolver = ReferenceResolver(client, ReferenceMetadataCache())

    task = asyncio.create_task(resolver.resolve("t/H/tx1:0"))
    await asyncio.sleep(0)
    resolver.cache.clear()
    client.release.set()

    assert (await task).name == "Ref"
    assert len(resolver.cache) == 0


@pytest.mark.anyio
async def test_reset_starts_fresh_fetch_for_later_callers():
    client = _StubClient(references={"H": {"name": "Ref", "image_url": "https://img"}})
    client.release.clear()
    resolver = ReferenceResolver(client, ReferenceMetadataCache())

    first = asyncio.create_task(resolver.resolve("t/H/tx1:0"))
    await asyncio.sleep(0)
    resolver.reset()
    assert not resolver.is_inflight("H")

    second = asyncio.create_task(resolver.resolve("t/H/tx2:0"))
    await asyncio.sleep(0)
    assert resolver.is_inflight("H")
    client.release.set()
    old, new = await asyncio.gather(first, second)

    assert client.reference_calls == ["H", "H"]
    assert old is not new
    assert resolver.cache.get("H") is new
    assert not resolver.is_inflight("H")
