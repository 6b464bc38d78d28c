"""Transaction type vocabulary and display labels."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TransactionType(str, Enum):
    """Semantic transaction types produced by the rule engine."""

    BITCOIN_TRANSFER = "bitcoin_transfer"
    TOKEN_MINT = "token_mint"
    TOKEN_TRANSFER = "token_transfer"
    TOKEN_BURN = "token_burn"
    NFT_MINT = "nft_mint"
    NFT_TRANSFER = "nft_transfer"
    DEX_CREATE_ASK = "dex_create_ask"
    DEX_CREATE_BID = "dex_create_bid"
    DEX_FULFILL_ASK = "dex_fulfill_ask"
    DEX_FULFILL_BID = "dex_fulfill_bid"
    DEX_CANCEL = "dex_cancel"
    DEX_PARTIAL_FILL = "dex_partial_fill"
    BRO_MINING = "bro_mining"
    BRO_MINT = "bro_mint"
    SPELL = "spell"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TypeInfo:
    """Display metadata for a classified type."""

    label: str
    icon: str
    color: str
    description: str


TRANSACTION_INFO: dict[TransactionType, TypeInfo] = {
    TransactionType.BITCOIN_TRANSFER: TypeInfo("Bitcoin Transfer", "₿", "orange", "Standard Bitcoin transaction"),
    TransactionType.TOKEN_MINT: TypeInfo("Token Mint", "🪙", "purple", "New tokens created"),
    TransactionType.TOKEN_TRANSFER: TypeInfo("Token Transfer", "↔️", "blue", "Tokens transferred between addresses"),
    TransactionType.TOKEN_BURN: TypeInfo("Token Burn", "🔥", "red", "Tokens permanently destroyed"),
    TransactionType.NFT_MINT: TypeInfo("NFT Mint", "🎨", "pink", "New NFT created"),
    TransactionType.NFT_TRANSFER: TypeInfo("NFT Transfer", "🖼️", "indigo", "NFT transferred to new owner"),
    TransactionType.DEX_CREATE_ASK: TypeInfo("DEX Ask Order", "📈", "green", "Sell order created on DEX"),
    TransactionType.DEX_CREATE_BID: TypeInfo("DEX Bid Order", "📉", "blue", "Buy order created on DEX"),
    TransactionType.DEX_FULFILL_ASK: TypeInfo("DEX Fulfill Ask", "✅", "emerald", "Sell order executed"),
    TransactionType.DEX_FULFILL_BID: TypeInfo("DEX Fulfill Bid", "✅", "emerald", "Buy order executed"),
    TransactionType.DEX_CANCEL: TypeInfo("DEX Cancel", "❌", "red", "Order cancelled"),
    TransactionType.DEX_PARTIAL_FILL: TypeInfo("DEX Partial Fill", "⚡", "yellow", "Order partially filled"),
    TransactionType.BRO_MINING: TypeInfo("BRO Mining", "⛏️", "orange", "BRO token mining transaction"),
    TransactionType.BRO_MINT: TypeInfo("BRO Mint", "🪙", "orange", "BRO token minted"),
    TransactionType.SPELL: TypeInfo("Spell", "✨", "purple", "Charms spell transaction"),
    TransactionType.UNKNOWN: TypeInfo("Unknown", "❓", "gray", "Unknown transaction type"),
}

DEX_TRANSACTION_TYPES = frozenset(
    {
        TransactionType.DEX_CREATE_ASK,
        TransactionType.DEX_CREATE_BID,
        TransactionType.DEX_FULFILL_ASK,
        TransactionType.DEX_FULFILL_BID,
        TransactionType.DEX_CANCEL,
        TransactionType.DEX_PARTIAL_FILL,
    }
)
# BRO mining and minting move fungible tokens too.
TOKEN_TRANSACTION_TYPES = frozenset(
    {
        TransactionType.TOKEN_MINT,
        TransactionType.TOKEN_TRANSFER,
        TransactionType.TOKEN_BURN,
        TransactionType.BRO_MINING,
        TransactionType.BRO_MINT,
    }
)
NFT_TRANSACTION_TYPES = frozenset({TransactionType.NFT_MINT, TransactionType.NFT_TRANSFER})


def _coerce(value: TransactionType | str) -> TransactionType:
    try:
        return TransactionType(value)
    except ValueError:
        return TransactionType.UNKNOWN


def transaction_info(value: TransactionType | str) -> TypeInfo:
    """Return display info for ``value``; unknown values map to ``unknown``."""

    return TRANSACTION_INFO[_coerce(value)]


def transaction_label(value: TransactionType | str) -> str:
    return transaction_info(value).label


def is_dex_transaction(value: TransactionType | str) -> bool:
    return _coerce(value) in DEX_TRANSACTION_TYPES


def is_token_transaction(value: TransactionType | str) -> bool:
    return _coerce(value) in TOKEN_TRANSACTION_TYPES


def is_nft_transaction(value: TransactionType | str) -> bool:
    return _coerce(value) in NFT_TRANSACTION_TYPES


__all__ = [
    "DEX_TRANSACTION_TYPES",
    "NFT_TRANSACTION_TYPES",
    "TOKEN_TRANSACTION_TYPES",
    "TRANSACTION_INFO",
    "TransactionType",
    "TypeInfo",
    "is_dex_transaction",
    "is_nft_transaction",
    "is_token_transaction",
    "transaction_info",
    "transaction_label",
]
