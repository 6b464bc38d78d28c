"""Transaction classification for charm records.

This module implements a transparent, rule-based classifier. Each rule is a
plain record (name, priority, predicate, result) and the engine evaluates the
table in ascending priority order: the first rule whose predicate matches
decides the type, and a record no rule matches is ``unknown``. Rules sharing a
priority keep their table order.

Predicates receive ``(record, spell_data, raw_tx)``:

- ``record``: raw indexer record (``identifier``/``app_id``/``charmid``, ``tags``,
  ``asset_type``, ``data`` ...);
- ``spell_data``: the spell payload from :func:`extract_spell_data`;
- ``raw_tx``: optional raw chain data with a ``vout`` list of
  ``{"value": sats, "scriptpubkey_type": ...}``.

A predicate that raises is logged and treated as non-matching so one broken
rule never aborts a batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Sequence

from charms_explorer.classification.transaction_types import (
    TransactionType,
    TypeInfo,
    is_dex_transaction,
    is_nft_transaction,
    is_token_transaction,
    transaction_info,
)
from charms_explorer.normalization.identifiers import identifier_prefix, record_identifier
from charms_explorer.normalization.reference_data import (
    BRO_MINING_SATS,
    BRO_MINT_SATS,
    DEX_TAGS,
    NFT_PREFIX,
    TOKEN_PREFIX,
)

LOGGER = logging.getLogger(__name__)

Predicate = Callable[[Mapping[str, Any], "Mapping[str, Any] | None", "Mapping[str, Any] | None"], bool]


@dataclass(frozen=True)
class ClassificationRule:
    """One row of the classification table."""

    name: str
    priority: int
    predicate: Predicate
    result: TransactionType


@dataclass(frozen=True)
class OrderDetails:
    """DEX order carried by one of the spell outputs."""

    side: str
    amount: Any = None
    quantity: Any = None
    price: Any = None
    maker: Any = None
    asset: Any = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "side": self.side,
            "amount": self.amount,
            "quantity": self.quantity,
            "price": self.price,
            "maker": self.maker,
            "asset": self.asset,
        }


@dataclass(frozen=True)
class TransactionAnalysis:
    """Classification result bundled with display info and flags."""

    type: TransactionType
    info: TypeInfo
    spell_data: Mapping[str, Any] | None
    is_dex: bool
    is_token: bool
    is_nft: bool
    is_bitcoin: bool
    order_details: OrderDetails | None


# ---------------------------------------------------------------------------
# Record inspection helpers
# ---------------------------------------------------------------------------


def _tags(record: Mapping[str, Any]) -> str:
    raw = record.get("tags")
    if isinstance(raw, str):
        return raw.lower()
    if isinstance(raw, Sequence) and not isinstance(raw, bytes):
        return ",".join(str(tag) for tag in raw).lower()
    return ""


def _prefix(record: Mapping[str, Any]) -> str | None:
    return identifier_prefix(record_identifier(record))


def _spell_tx(spell_data: Mapping[str, Any] | None) -> Mapping[str, Any]:
    if not isinstance(spell_data, Mapping):
        return {}
    tx = spell_data.get("tx")
    return tx if isinstance(tx, Mapping) else {}


def _list(value: Any) -> list[Any]:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return list(value)
    return []


def _charm_inputs(spell_data: Mapping[str, Any] | None) -> list[Any]:
    return _list(_spell_tx(spell_data).get("ins"))


def _outputs_without_charms(spell_data: Mapping[str, Any] | None) -> bool:
    outs = _spell_tx(spell_data).get("outs")
    if not isinstance(outs, Sequence) or isinstance(outs, (str, bytes)):
        return False
    return not any(isinstance(out, Mapping) and out for out in outs)


def _vout(raw_tx: Mapping[str, Any] | None) -> list[Mapping[str, Any]]:
    if not isinstance(raw_tx, Mapping):
        return []
    return [out for out in _list(raw_tx.get("vout")) if isinstance(out, Mapping)]


def _side(spell_data: Mapping[str, Any] | None) -> str | None:
    if not isinstance(spell_data, Mapping):
        return None
    side = spell_data.get("side")
    if side is None:
        order = spell_data.get("order_details")
        side = order.get("side") if isinstance(order, Mapping) else None
    return side.lower() if isinstance(side, str) else None


# ---------------------------------------------------------------------------
# Rule predicates
# ---------------------------------------------------------------------------


def _tag_rule(tag: str) -> Predicate:
    def predicate(record, spell_data, raw_tx) -> bool:
        return tag in _tags(record)

    return predicate


def _create_order_rule(tag: str, side: str) -> Predicate:
    def predicate(record, spell_data, raw_tx) -> bool:
        tags = _tags(record)
        return tag in tags or (_side(spell_data) == side and "fulfill" not in tags)

    return predicate


def _is_bro_mining(record, spell_data, raw_tx) -> bool:
    vout = _vout(raw_tx)
    if not vout:
        return False
    has_op_return = vout[0].get("scriptpubkey_type") == "op_return"
    return has_op_return and any(out.get("value") in BRO_MINING_SATS for out in vout)


def _is_bro_mint(record, spell_data, raw_tx) -> bool:
    return any(out.get("value") in BRO_MINT_SATS for out in _vout(raw_tx))


def _is_nft_mint(record, spell_data, raw_tx) -> bool:
    return _prefix(record) == NFT_PREFIX and not _charm_inputs(spell_data)


def _is_nft_transfer(record, spell_data, raw_tx) -> bool:
    return _prefix(record) == NFT_PREFIX and bool(_charm_inputs(spell_data))


def _is_token_burn(record, spell_data, raw_tx) -> bool:
    if _prefix(record) != TOKEN_PREFIX:
        return False
    if "burn" in _tags(record):
        return True
    return bool(_charm_inputs(spell_data)) and _outputs_without_charms(spell_data)


def _is_token_mint(record, spell_data, raw_tx) -> bool:
    if _prefix(record) != TOKEN_PREFIX:
        return False
    return not spell_data or not _charm_inputs(spell_data)


def _is_token_transfer(record, spell_data, raw_tx) -> bool:
    return _prefix(record) == TOKEN_PREFIX and bool(_charm_inputs(spell_data))


def _is_spell(record, spell_data, raw_tx) -> bool:
    if not isinstance(spell_data, Mapping):
        return False
    if spell_data.get("detected") is True or spell_data.get("has_native_data") is True:
        return True
    return isinstance(spell_data.get("tx"), Mapping)


def _is_bitcoin_transfer(record, spell_data, raw_tx) -> bool:
    if record.get("isBitcoinTx") is True or record.get("is_bitcoin_tx") is True:
        return True
    return record.get("asset_type") == "bitcoin"


DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "DEX Create Ask", 10, _create_order_rule(DEX_TAGS["create_ask"], "ask"), TransactionType.DEX_CREATE_ASK
    ),
    ClassificationRule(
        "DEX Create Bid", 10, _create_order_rule(DEX_TAGS["create_bid"], "bid"), TransactionType.DEX_CREATE_BID
    ),
    ClassificationRule("DEX Fulfill Ask", 10, _tag_rule(DEX_TAGS["fulfill_ask"]), TransactionType.DEX_FULFILL_ASK),
    ClassificationRule("DEX Fulfill Bid", 10, _tag_rule(DEX_TAGS["fulfill_bid"]), TransactionType.DEX_FULFILL_BID),
    ClassificationRule("DEX Cancel", 10, _tag_rule(DEX_TAGS["cancel"]), TransactionType.DEX_CANCEL),
    ClassificationRule("DEX Partial Fill", 10, _tag_rule(DEX_TAGS["partial_fill"]), TransactionType.DEX_PARTIAL_FILL),
    ClassificationRule("BRO Mining", 20, _is_bro_mining, TransactionType.BRO_MINING),
    ClassificationRule("BRO Mint", 20, _is_bro_mint, TransactionType.BRO_MINT),
    ClassificationRule("NFT Mint", 30, _is_nft_mint, TransactionType.NFT_MINT),
    ClassificationRule("NFT Transfer", 30, _is_nft_transfer, TransactionType.NFT_TRANSFER),
    # Burn precedes mint: a burn has inputs but no charm outputs.
    ClassificationRule("Token Burn", 40, _is_token_burn, TransactionType.TOKEN_BURN),
    ClassificationRule("Token Mint", 40, _is_token_mint, TransactionType.TOKEN_MINT),
    ClassificationRule("Token Transfer", 40, _is_token_transfer, TransactionType.TOKEN_TRANSFER),
    ClassificationRule("Spell", 50, _is_spell, TransactionType.SPELL),
    ClassificationRule("Bitcoin Transfer", 100, _is_bitcoin_transfer, TransactionType.BITCOIN_TRANSFER),
)


class RuleEngine:
    """Evaluate an ordered rule table; the first matching rule wins."""

    def __init__(self, rules: Iterable[ClassificationRule] = DEFAULT_RULES) -> None:
        # sorted() is stable, so equal priorities keep table order.
        self._rules: tuple[ClassificationRule, ...] = tuple(sorted(rules, key=lambda rule: rule.priority))

    @property
    def rules(self) -> tuple[ClassificationRule, ...]:
        return self._rules

    def with_rules(self, *extra: ClassificationRule) -> "RuleEngine":
        """Return a new engine with ``extra`` appended to the current table."""

        return RuleEngine((*self._rules, *extra))

    def classify(
        self,
        record: Mapping[str, Any] | None,
        spell_data: Mapping[str, Any] | None = None,
        raw_tx: Mapping[str, Any] | None = None,
    ) -> TransactionType:
        if not isinstance(record, Mapping):
            return TransactionType.UNKNOWN
        for rule in self._rules:
            try:
                matched = rule.predicate(record, spell_data, raw_tx)
            except Exception as exc:
                LOGGER.warning("Classification rule %r failed: %s", rule.name, exc)
                continue
            if matched:
                return rule.result
        return TransactionType.UNKNOWN


DEFAULT_ENGINE = RuleEngine()


def _order_from_output(value: Mapping[str, Any]) -> OrderDetails:
    asset = value.get("asset")
    if isinstance(asset, Mapping):
        asset = asset.get("token")
    return OrderDetails(
        side=str(value.get("side")),
        amount=value.get("amount"),
        quantity=value.get("quantity"),
        price=value.get("price"),
        maker=value.get("maker"),
        asset=asset,
    )


def _find_order(payload: Mapping[str, Any]) -> OrderDetails | None:
    for out in _list(_spell_tx(payload).get("outs")):
        if not isinstance(out, Mapping):
            continue
        for key in sorted(out, key=str):
            value = out[key]
            if isinstance(value, Mapping) and value.get("side"):
                return _order_from_output(value)
    return None


def extract_spell_data(record: Mapping[str, Any] | None) -> dict[str, Any] | None:
    """Return the spell payload of ``record``.

    The payload is ``data.native_data``, else ``native_data``, else ``data``.
    When a spell output carries a DEX order its fields are copied under
    ``order_details``.
    """

    if not isinstance(record, Mapping):
        return None
    data = record.get("data")
    candidates = (
        data.get("native_data") if isinstance(data, Mapping) else None,
        record.get("native_data"),
        data,
    )
    payload = next((candidate for candidate in candidates if isinstance(candidate, Mapping) and candidate), None)
    if payload is None:
        return None
    order = _find_order(payload)
    if order is None:
        return dict(payload)
    return {**payload, "order_details": order.as_dict()}


def find_order_details(record: Mapping[str, Any] | None) -> OrderDetails | None:
    """Return the DEX order carried by ``record``'s spell outputs, if any."""

    payload = extract_spell_data(record)
    if not payload:
        return None
    return _find_order(payload)


def classify_transaction(
    record: Mapping[str, Any] | None,
    spell_data: Mapping[str, Any] | None = None,
    raw_tx: Mapping[str, Any] | None = None,
    *,
    engine: RuleEngine | None = None,
) -> TransactionType:
    """Classify a raw record into a :class:`TransactionType`.

    Args:
        record: Raw indexer record.
        spell_data: Parsed spell payload. Extracted from ``record`` when omitted.
        raw_tx: Optional raw chain data used by the sats-pattern rules.
        engine: Alternate rule engine; defaults to :data:`DEFAULT_ENGINE`.

    Returns:
        The type of the first matching rule, or ``TransactionType.UNKNOWN``.
    """

    if not isinstance(record, Mapping):
        return TransactionType.UNKNOWN
    if spell_data is None:
        spell_data = extract_spell_data(record)
    return (engine or DEFAULT_ENGINE).classify(record, spell_data, raw_tx)


def analyze_transaction(
    record: Mapping[str, Any] | None,
    raw_tx: Mapping[str, Any] | None = None,
) -> TransactionAnalysis:
    """Classify ``record`` and bundle the result with display info and flags."""

    spell_data = extract_spell_data(record)
    kind = classify_transaction(record, spell_data, raw_tx)
    order = _find_order(spell_data) if spell_data else None
    return TransactionAnalysis(
        type=kind,
        info=transaction_info(kind),
        spell_data=spell_data,
        is_dex=is_dex_transaction(kind),
        is_token=is_token_transaction(kind),
        is_nft=is_nft_transaction(kind),
        is_bitcoin=kind is TransactionType.BITCOIN_TRANSFER,
        order_details=order,
    )


__all__ = [
    "ClassificationRule",
    "DEFAULT_ENGINE",
    "DEFAULT_RULES",
    "OrderDetails",
    "RuleEngine",
    "TransactionAnalysis",
    "analyze_transaction",
    "classify_transaction",
    "extract_spell_data",
    "find_order_details",
]
