"""Command-line inspection of indexer data through the explorer core."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Sequence

from rich.console import Console
from rich.table import Table

from charms_explorer.classification.charm_classifier import charm_info, classify_charm
from charms_explorer.classification.classifier import analyze_transaction
from charms_explorer.normalization.display import format_field_name, format_field_value, truncate_middle
from charms_explorer.normalization.identifiers import canonical_key, record_identifier
from charms_explorer.normalization.spell_parser import display_metadata
from charms_explorer.services.assets import (
    DedupeOptions,
    HolderAggregate,
    aggregate_holders,
    count_unique,
    dedupe_assets,
)
from charms_explorer.services.factories import ExplorerServices, build_explorer_services
from charms_explorer.services.indexer_client import IndexerClientError
from charms_explorer.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)

console = Console()


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def _build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="charms-explorer", description="Inspect Charms assets from the indexer.")
    parser.add_argument("--api-url", default=None, help="Indexer base URL (defaults to configured value)")
    parser.add_argument("--network", default=None, choices=["mainnet", "testnet4"], help="Bitcoin network")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    assets = sub.add_parser("assets", help="List unique assets")
    assets.add_argument("--type", dest="asset_type", default="all", choices=["all", "nft", "token", "dapp", "other"])
    assets.add_argument("--sort", default="newest", choices=["newest", "oldest"])
    assets.add_argument("--page", type=int, default=1)
    assets.add_argument("--page-size", type=int, default=settings.pagination.default_page_size)

    sub.add_parser("counts", help="Count unique assets per type")

    holders = sub.add_parser("holders", help="Show the holder distribution of an asset")
    holders.add_argument("app_id")

    classify = sub.add_parser("classify", help="Classify a single charm")
    classify.add_argument("charm_id")

    reference = sub.add_parser("reference", help="Resolve reference-NFT metadata for a token")
    reference.add_argument("token_id")
    return parser


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    update = {}
    if args.api_url:
        update["base_url"] = args.api_url
    if args.network:
        update["network"] = args.network
    if not update:
        return settings
    return settings.model_copy(update={"indexer": settings.indexer.model_copy(update=update)})


async def _show_assets(services: ExplorerServices, args: argparse.Namespace) -> int:
    raw = await services.client.list_assets(limit=services.settings.indexer.reference_list_limit)
    page_size = min(args.page_size, services.settings.pagination.max_page_size)
    page = dedupe_assets(
        raw,
        DedupeOptions(asset_type=args.asset_type, sort=args.sort, page=args.page, page_size=page_size),
    )
    await services.resolver.prefetch(asset.identifier for asset in page.assets)

    table = Table(title=f"Assets (page {page.page}/{page.total_pages}, {page.total} unique)")
    for column in ("Key", "Type", "Kind", "Name", "Block", "Mints"):
        table.add_column(column)
    for asset in page.assets:
        reference = services.resolver.cached_for_token(asset.identifier)
        metadata = display_metadata(asset.record, reference)
        table.add_row(
            truncate_middle(asset.key, edge=12, threshold=30),
            asset.asset_type,
            charm_info(asset.charm_type).label,
            metadata.name or "-",
            format_field_value(asset.block_height),
            str(asset.mint_count),
        )
    console.print(table)
    return 0


async def _show_counts(services: ExplorerServices, args: argparse.Namespace) -> int:
    raw = await services.client.list_assets(limit=services.settings.indexer.reference_list_limit)
    counts = count_unique(raw)
    table = Table(title="Unique assets")
    table.add_column("Type")
    table.add_column("Count", justify="right")
    for field, value in counts.model_dump().items():
        table.add_row(format_field_name(field), format_field_value(value))
    console.print(table)
    return 0


async def _load_holders(services: ExplorerServices, app_id: str) -> HolderAggregate:
    payload = await services.client.get_holders(app_id)
    if payload is not None:
        return HolderAggregate.model_validate(payload)
    LOGGER.info("Holders endpoint missing for %s; aggregating from charms", app_id)
    target = canonical_key(app_id)
    charms = [charm for charm in await services.client.list_charms() if canonical_key(record_identifier(charm)) == target]
    return aggregate_holders(charms, app_id=app_id)


async def _show_holders(services: ExplorerServices, args: argparse.Namespace) -> int:
    aggregate = await _load_holders(services, args.app_id)
    table = Table(title=f"{aggregate.total_holders} holders, supply {format_field_value(aggregate.total_supply)}")
    for column in ("Address", "Amount", "Share", "Charms"):
        table.add_column(column)
    for holder in aggregate.holders:
        table.add_row(
            truncate_middle(holder.address, edge=8, threshold=24),
            format_field_value(holder.total_amount),
            f"{holder.percentage:.2f}%",
            str(holder.charm_count),
        )
    console.print(table)
    return 0


async def _show_classification(services: ExplorerServices, args: argparse.Namespace) -> int:
    record = await services.client.get_charm(args.charm_id)
    if record is None:
        console.print(f"[yellow]Charm not found:[/yellow] {args.charm_id}")
        return 1
    analysis = analyze_transaction(record)
    kind = classify_charm(record)
    metadata = display_metadata(record, await services.resolver.resolve(record_identifier(record)))

    console.print(f"[bold]{analysis.info.icon} {analysis.info.label}[/bold] ({analysis.type.value})")
    console.print(f"Asset kind: {charm_info(kind).label}")
    table = Table(show_header=False)
    table.add_column("Field")
    table.add_column("Value")
    for field in ("name", "ticker", "description", "image", "url", "supply_limit", "decimals"):
        table.add_row(format_field_name(field), format_field_value(getattr(metadata, field)))
    for field, value in metadata.extra_fields.items():
        table.add_row(format_field_name(field), format_field_value(value))
    if analysis.order_details is not None:
        for field, value in analysis.order_details.as_dict().items():
            table.add_row(f"Order {format_field_name(field)}", format_field_value(value))
    console.print(table)
    return 0


async def _show_reference(services: ExplorerServices, args: argparse.Namespace) -> int:
    metadata = await services.resolver.resolve(args.token_id)
    if metadata is None:
        console.print(f"[yellow]No reference NFT metadata for[/yellow] {args.token_id}")
        return 1
    table = Table(show_header=False)
    table.add_column("Field")
    table.add_column("Value")
    for field, value in metadata.model_dump().items():
        table.add_row(format_field_name(field), format_field_value(value))
    console.print(table)
    return 0


_COMMANDS = {
    "assets": _show_assets,
    "counts": _show_counts,
    "holders": _show_holders,
    "classify": _show_classification,
    "reference": _show_reference,
}


async def _run(settings: Settings, args: argparse.Namespace) -> int:
    async with build_explorer_services(settings) as services:
        try:
            return await _COMMANDS[args.command](services, args)
        except IndexerClientError as exc:
            console.print(f"[red]Indexer request failed:[/red] {exc}")
            return 1


def main(argv: Sequence[str] | None = None) -> int:
    settings = get_settings()
    args = _build_parser(settings).parse_args(argv)
    _configure_logging(args.log_level)
    return asyncio.run(_run(_apply_overrides(settings, args), args))


if __name__ == "__main__":
    sys.exit(main())
