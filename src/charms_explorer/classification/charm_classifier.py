"""Coarse asset-level classification of charms.

Where :mod:`charms_explorer.classification.classifier` labels what a
transaction did, this module labels what an asset *is*: an NFT, a fungible
token, a dApp, the verified $BRO token family or a Charms Cast DEX order.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Mapping

from charms_explorer.classification.classifier import find_order_details
from charms_explorer.classification.transaction_types import TypeInfo
from charms_explorer.normalization.identifiers import content_hash, identifier_prefix, record_identifier
from charms_explorer.normalization.reference_data import (
    CHARMS_CAST_TAG,
    CHARMS_CAST_VKS,
    DAPP_PREFIX,
    NFT_PREFIX,
    TOKEN_PREFIX,
    VERIFIED_BRO_HASHES,
)


class CharmType(str, Enum):
    """Asset-level charm categories."""

    NFT = "nft"
    TOKEN = "token"
    DAPP = "dapp"
    BRO_TOKEN = "bro_token"
    CHARMS_CAST_DEX = "charms_cast_dex"
    DEX_ORDER = "dex_order"
    OTHER = "other"


CHARM_INFO: dict[CharmType, TypeInfo] = {
    CharmType.BRO_TOKEN: TypeInfo("$BRO Token", "🪙", "amber", "Verified $BRO token family"),
    CharmType.CHARMS_CAST_DEX: TypeInfo("Charms Cast DEX", "🔄", "violet", "Charms Cast DEX charm"),
    CharmType.DEX_ORDER: TypeInfo("DEX Order", "📊", "violet", "Open or settled DEX order"),
    CharmType.NFT: TypeInfo("NFT", "🎨", "purple", "Non-fungible charm"),
    CharmType.TOKEN: TypeInfo("Token", "💰", "amber", "Fungible token charm"),
    CharmType.DAPP: TypeInfo("dApp", "⚙️", "slate", "Application charm"),
    CharmType.OTHER: TypeInfo("Other", "📦", "slate", "Unclassified charm"),
}

_DECLARED_TYPES = {
    "nft": CharmType.NFT,
    "token": CharmType.TOKEN,
    "dapp": CharmType.DAPP,
}
_PREFIX_TYPES = {
    NFT_PREFIX: CharmType.NFT,
    TOKEN_PREFIX: CharmType.TOKEN,
}
_CAST_VKS = frozenset(CHARMS_CAST_VKS.values())


def is_verified_bro(identifier: Any) -> bool:
    """Return ``True`` only for ``t/``/``n/`` identifiers of the verified $BRO hash.

    Matching is exact on the content hash; names, tags and substrings are
    never consulted.
    """

    if identifier_prefix(identifier) not in (TOKEN_PREFIX, NFT_PREFIX):
        return False
    return content_hash(identifier) in VERIFIED_BRO_HASHES


def is_charms_cast_app(app_id: Any) -> bool:
    """Return ``True`` for ``b/<identity>/<vk>`` apps signed by a Charms Cast key."""

    if not isinstance(app_id, str) or identifier_prefix(app_id) != DAPP_PREFIX:
        return False
    return app_id.rsplit("/", 1)[-1] in _CAST_VKS


def _app_references(inputs: Any) -> list[str]:
    if isinstance(inputs, Mapping):
        return [key for key in inputs if isinstance(key, str)]
    if isinstance(inputs, (list, tuple)):
        refs: list[str] = []
        for item in inputs:
            if isinstance(item, str):
                refs.append(item)
            elif isinstance(item, Mapping):
                refs.extend(_app_references(item))
        return refs
    return []


def _tag_text(value: Any) -> str:
    if isinstance(value, str):
        return value.lower()
    if value is None:
        return ""
    return json.dumps(value, default=str).lower()


def _native_data(data: Mapping[str, Any]) -> Mapping[str, Any] | None:
    native = data.get("native_data")
    if isinstance(native, Mapping):
        return native
    nested = data.get("data")
    if isinstance(nested, Mapping) and isinstance(nested.get("native_data"), Mapping):
        return nested["native_data"]
    return None


def _references_cast_app(native: Mapping[str, Any] | None) -> bool:
    if native is None:
        return False
    return any(is_charms_cast_app(ref) for ref in _app_references(native.get("app_public_inputs")))


def _has_dex_tags(record: Mapping[str, Any]) -> bool:
    tags = _tag_text(record.get("tags"))
    return CHARMS_CAST_TAG in tags or "dex" in tags


def _has_dex_payload(record: Mapping[str, Any], identifier: str | None) -> bool:
    data = record.get("data")
    if isinstance(data, Mapping):
        if _references_cast_app(_native_data(data)):
            return True
        if CHARMS_CAST_TAG in _tag_text(data.get("tags")):
            return True
    return identifier_prefix(identifier) == DAPP_PREFIX


def _dex_type(record: Mapping[str, Any]) -> CharmType:
    if find_order_details(record) is not None:
        return CharmType.DEX_ORDER
    return CharmType.CHARMS_CAST_DEX


def classify_charm(record: Mapping[str, Any] | None) -> CharmType:
    """Classify a raw charm record into a :class:`CharmType`.

    Order of checks: DEX tags, verified $BRO hash, Charms Cast app references
    in the spell payload, ``b/`` identifiers, then the identifier prefix and finally
    the declared ``asset_type`` for identifiers without a known prefix.
    """

    if not isinstance(record, Mapping):
        return CharmType.OTHER
    identifier = record_identifier(record)

    if _has_dex_tags(record):
        return _dex_type(record)
    if is_verified_bro(identifier):
        return CharmType.BRO_TOKEN
    if _has_dex_payload(record, identifier):
        return _dex_type(record)

    prefix = identifier_prefix(identifier)
    if prefix in _PREFIX_TYPES:
        return _PREFIX_TYPES[prefix]

    declared = record.get("asset_type")
    if isinstance(declared, str):
        return _DECLARED_TYPES.get(declared.strip().lower(), CharmType.OTHER)
    return CharmType.OTHER


def charm_info(value: CharmType | str) -> TypeInfo:
    """Return display info for ``value``; unknown values map to ``other``."""

    try:
        return CHARM_INFO[CharmType(value)]
    except ValueError:
        return CHARM_INFO[CharmType.OTHER]


__all__ = ["CHARM_INFO", "CharmType", "charm_info", "classify_charm", "is_charms_cast_app", "is_verified_bro"]
