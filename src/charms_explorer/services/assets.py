"""Deduplication and aggregation of raw indexer records.

The indexer returns one record per physical mint or UTXO. These helpers
collapse records sharing a canonical key (``prefix/contentHash``) into unique
logical assets, count them per type and aggregate balances per holder. All
functions are pure and tolerate malformed input by skipping it.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Literal, Mapping

from pydantic import BaseModel, Field, field_validator

from charms_explorer.classification.charm_classifier import CharmType, classify_charm
from charms_explorer.normalization.identifiers import asset_type_for, canonical_key, record_identifier

LOGGER = logging.getLogger(__name__)

AssetTypeFilter = Literal["all", "nft", "token", "dapp", "other"]
SortOrder = Literal["newest", "oldest"]


class DedupeOptions(BaseModel):
    """Filter, sort and pagination controls for :func:`dedupe_assets`."""

    asset_type: AssetTypeFilter = "all"
    sort: SortOrder = "newest"
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1)

    @field_validator("asset_type", "sort", mode="before")
    @classmethod
    def _lowercase(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class UniqueAsset(BaseModel):
    """One logical asset standing for every mint that shares its key."""

    key: str
    identifier: str
    asset_type: str
    charm_type: CharmType
    block_height: int | None = None
    mint_count: int = 1
    record: Dict[str, Any] = Field(default_factory=dict)


class AssetPage(BaseModel):
    """One page of deduplicated assets."""

    assets: List[UniqueAsset] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    total_pages: int = 1


class UniqueCounts(BaseModel):
    """Unique asset counts; ``total`` excludes the ``other`` bucket."""

    total: int = 0
    nft: int = 0
    token: int = 0
    dapp: int = 0
    other: int = 0


class HolderInfo(BaseModel):
    """Balance held by one address for one asset."""

    address: str
    total_amount: int | float = 0
    percentage: float = 0.0
    charm_count: int = 0
    first_seen_block: int | None = None
    last_updated_block: int | None = None


class HolderAggregate(BaseModel):
    """Holder distribution of one asset, largest balance first."""

    app_id: str | None = None
    holders: List[HolderInfo] = Field(default_factory=list)
    total_holders: int = 0
    total_supply: int | float = 0


class AddressHolding(BaseModel):
    """One address's charms of a single logical asset."""

    key: str
    identifier: str
    asset_type: str
    charm_type: CharmType
    total_amount: int | float = 0
    charm_count: int = 0
    first_block: int | None = None
    record: Dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Field readers
# ---------------------------------------------------------------------------


def _records(raw: Any) -> list[Mapping[str, Any]]:
    if raw is None or isinstance(raw, (str, bytes, Mapping)):
        return []
    try:
        return [item for item in raw if isinstance(item, Mapping)]
    except TypeError:
        return []


def _block_height(record: Mapping[str, Any]) -> int | None:
    value = record.get("block_height")
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _amount(record: Mapping[str, Any]) -> int | float:
    value = record.get("amount")
    if value is None:
        data = record.get("data")
        value = data.get("amount") if isinstance(data, Mapping) else None
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return 0
        return int(parsed) if parsed.is_integer() else parsed
    return 0


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------


def _group_unique(records: Iterable[Mapping[str, Any]]) -> Dict[str, UniqueAsset]:
    """Keep the first record per canonical key, counting later duplicates."""

    groups: Dict[str, UniqueAsset] = {}
    for record in records:
        identifier = record_identifier(record)
        key = canonical_key(identifier)
        if key is None:
            continue
        existing = groups.get(key)
        if existing is not None:
            existing.mint_count += 1
            continue
        groups[key] = UniqueAsset(
            key=key,
            identifier=identifier,
            asset_type=asset_type_for(identifier),
            charm_type=classify_charm(record),
            block_height=_block_height(record),
            record=dict(record),
        )
    return groups


def dedupe_assets(raw_assets: Any, options: DedupeOptions | None = None) -> AssetPage:
    """Collapse raw mint records into one page of unique assets.

    Args:
        raw_assets: Raw indexer records; anything that is not a sequence of
            mappings yields an empty page.
        options: Filter, sort and pagination options.

    Returns:
        :class:`AssetPage`. ``total`` counts unique assets after filtering and
        ``total_pages`` is never below 1.
    """

    options = options or DedupeOptions()
    records = _records(raw_assets)
    if not records:
        return AssetPage()

    unique = list(_group_unique(records).values())
    if options.asset_type != "all":
        unique = [asset for asset in unique if asset.asset_type == options.asset_type]
    # Stable sort: equal heights keep first-seen order in both directions.
    unique.sort(key=lambda asset: asset.block_height or 0, reverse=options.sort == "newest")

    total = len(unique)
    total_pages = max(1, math.ceil(total / options.page_size))
    start = (options.page - 1) * options.page_size
    page_assets = unique[start : start + options.page_size]
    LOGGER.debug(
        "Deduplicated %d records into %d assets (page %d/%d)", len(records), total, options.page, total_pages
    )
    return AssetPage(assets=page_assets, total=total, page=options.page, total_pages=total_pages)


def count_unique(raw_assets: Any) -> UniqueCounts:
    """Count unique assets per prefix-derived type."""

    counts = {"nft": 0, "token": 0, "dapp": 0, "other": 0}
    for asset in _group_unique(_records(raw_assets)).values():
        counts[asset.asset_type] = counts.get(asset.asset_type, 0) + 1
    return UniqueCounts(total=counts["nft"] + counts["token"] + counts["dapp"], **counts)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def aggregate_holders(
    raw_utxos: Any,
    app_id: str | None = None,
    total_supply: int | float | None = None,
) -> HolderAggregate:
    """Aggregate UTXO records of one asset into per-address balances.

    Args:
        raw_utxos: Raw charm/UTXO records carrying ``address`` and ``amount``
            (or ``data.amount``).
        app_id: Asset identifier. When given, records of other assets are
            ignored; when omitted, the first record's canonical key is used.
        total_supply: Supply used for percentages. Defaults to the sum of all
            aggregated balances.

    Returns:
        :class:`HolderAggregate` with holders ordered by descending balance,
        ties kept in first-seen order.
    """

    target = canonical_key(app_id) if app_id else None
    holders: Dict[str, HolderInfo] = {}
    resolved_app_id = app_id

    for record in _records(raw_utxos):
        key = canonical_key(record_identifier(record))
        if target is not None and key is not None and key != target:
            continue
        if resolved_app_id is None and key is not None:
            resolved_app_id = key
        address = record.get("address")
        if not isinstance(address, str) or not address:
            continue

        amount = _amount(record)
        block = _block_height(record)
        holder = holders.get(address)
        if holder is None:
            holder = holders[address] = HolderInfo(address=address)
        holder.total_amount += amount
        holder.charm_count += 1
        if block is not None:
            if holder.first_seen_block is None or block < holder.first_seen_block:
                holder.first_seen_block = block
            if holder.last_updated_block is None or block > holder.last_updated_block:
                holder.last_updated_block = block

    ordered = sorted(holders.values(), key=lambda item: item.total_amount, reverse=True)
    supply = total_supply if total_supply is not None else sum(item.total_amount for item in ordered)
    for holder in ordered:
        holder.percentage = (holder.total_amount / supply) * 100.0 if supply else 0.0

    return HolderAggregate(
        app_id=resolved_app_id,
        holders=ordered,
        total_holders=len(ordered),
        total_supply=supply,
    )


def group_address_holdings(charms: Any) -> List[AddressHolding]:
    """Collapse one address's charms by canonical key in first-seen order."""

    grouped: Dict[str, AddressHolding] = {}
    for record in _records(charms):
        identifier = record_identifier(record)
        key = canonical_key(identifier)
        if key is None:
            continue
        block = _block_height(record)
        holding = grouped.get(key)
        if holding is None:
            holding = grouped[key] = AddressHolding(
                key=key,
                identifier=identifier,
                asset_type=asset_type_for(identifier),
                charm_type=classify_charm(record),
                first_block=block,
                record=dict(record),
            )
        elif block is not None and (holding.first_block is None or block < holding.first_block):
            holding.first_block = block
        holding.total_amount += _amount(record)
        holding.charm_count += 1
    return list(grouped.values())


__all__ = [
    "AddressHolding",
    "AssetPage",
    "DedupeOptions",
    "HolderAggregate",
    "HolderInfo",
    "UniqueAsset",
    "UniqueCounts",
    "aggregate_holders",
    "count_unique",
    "dedupe_assets",
    "group_address_holdings",
]
