"""Asset identifier parsing and canonical key derivation.

Charms identifiers are ``/``-separated strings of the form
``<prefix>/<content hash>/<mint reference>``. The prefix tells the asset
family (``t`` token, ``n`` NFT, ``b`` dApp/DEX carrier), the content hash names
the logical asset and the mint reference (``txid:vout``) distinguishes the
individual physical mints of that asset.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from charms_explorer.normalization.reference_data import (
    NFT_PREFIX,
    PREFIX_ASSET_TYPES,
    TOKEN_PREFIX,
)

_IDENTIFIER_KEYS = ("identifier", "app_id", "charmid")
_GROUPED_PREFIXES = frozenset({TOKEN_PREFIX, NFT_PREFIX})


@dataclass(frozen=True)
class MintReference:
    """Origin output of a single physical mint."""

    txid: str
    vout: int | None = None

    def __str__(self) -> str:
        return self.txid if self.vout is None else f"{self.txid}:{self.vout}"


@dataclass(frozen=True)
class ParsedIdentifier:
    """Structured view of an asset identifier."""

    prefix: str
    content_hash: str | None
    mint_reference: MintReference | None

    @property
    def canonical_key(self) -> str | None:
        if self.prefix in _GROUPED_PREFIXES:
            return f"{self.prefix}/{self.content_hash}" if self.content_hash else None
        tail = [part for part in (self.content_hash, str(self.mint_reference or "")) if part]
        return "/".join([self.prefix, *tail])


def _segments(identifier: object) -> list[str] | None:
    if not isinstance(identifier, str) or not identifier or "/" not in identifier:
        return None
    return identifier.split("/", 2)


def parse_identifier(identifier: object) -> ParsedIdentifier | None:
    """Split an identifier into prefix, content hash and mint reference.

    Returns ``None`` for empty, non-string, or slash-less input.
    """

    segments = _segments(identifier)
    if segments is None:
        return None
    prefix = segments[0]
    hash_part = segments[1] if len(segments) > 1 and segments[1] else None
    reference = _parse_mint_reference(segments[2]) if len(segments) > 2 else None
    return ParsedIdentifier(prefix=prefix, content_hash=hash_part, mint_reference=reference)


def _parse_mint_reference(raw: str) -> MintReference | None:
    if not raw:
        return None
    txid, sep, vout = raw.rpartition(":")
    if sep and txid and vout.isdigit():
        return MintReference(txid=txid, vout=int(vout))
    return MintReference(txid=raw)


def canonical_key(identifier: object) -> str | None:
    """Return the grouping key shared by every mint of the same asset.

    ``t/`` and ``n/`` identifiers collapse to ``prefix/contentHash``; other
    identifiers are returned unchanged. Empty or slash-less input, and ``t/`` or
    ``n/`` identifiers without a content hash, yield ``None``.
    """

    segments = _segments(identifier)
    if segments is None:
        return None
    if segments[0] in _GROUPED_PREFIXES:
        if not segments[1]:
            return None
        return f"{segments[0]}/{segments[1]}"
    return identifier  # type: ignore[return-value]


def content_hash(identifier: object) -> str | None:
    """Return the second ``/`` segment of ``identifier`` or ``None``."""

    segments = _segments(identifier)
    if segments is None or not segments[1]:
        return None
    return segments[1]


def mint_reference(identifier: object) -> MintReference | None:
    """Return the mint reference (``txid:vout``) portion of ``identifier``."""

    parsed = parse_identifier(identifier)
    return parsed.mint_reference if parsed else None


def reference_identifier_for_token(token_id: object) -> str | None:
    """Map a token identifier to the reference NFT carrying its metadata.

    ``t/ABCD/txid:0`` becomes ``n/ABCD``. Any input that is not a ``t/``
    identifier with a content hash yields ``None``.
    """

    if not isinstance(token_id, str) or not token_id.startswith(f"{TOKEN_PREFIX}/"):
        return None
    hash_part = content_hash(token_id)
    if not hash_part:
        return None
    return f"{NFT_PREFIX}/{hash_part}"


def identifier_prefix(identifier: object) -> str | None:
    segments = _segments(identifier)
    return segments[0] if segments else None


def asset_type_for(identifier: object) -> str:
    """Return ``nft``, ``token``, ``dapp`` or ``other`` from the identifier prefix."""

    return PREFIX_ASSET_TYPES.get(identifier_prefix(identifier) or "", "other")


def record_identifier(record: Mapping[str, Any] | None) -> str | None:
    """Return the identifier of a raw indexer record.

    The indexer has used ``identifier``, ``app_id`` and ``charmid`` for the
    same value across API versions; the first non-empty string wins.
    """

    if not isinstance(record, Mapping):
        return None
    for key in _IDENTIFIER_KEYS:
        value = record.get(key)
        if isinstance(value, str) and value:
            return value
    return None


__all__ = [
    "MintReference",
    "ParsedIdentifier",
    "asset_type_for",
    "canonical_key",
    "content_hash",
    "identifier_prefix",
    "mint_reference",
    "parse_identifier",
    "record_identifier",
    "reference_identifier_for_token",
]
