"""Spell metadata parser.

The indexer stores spell payloads in several incompatible layouts depending on
the protocol version that produced them. :data:`PAYLOAD_SHAPES` lists the
layouts in precedence order; the first one that yields a metadata object wins
and the rest are not consulted.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

from charms_explorer.normalization.display import render_bytes
from charms_explorer.normalization.reference_data import STANDARD_FIELDS
from charms_explorer.normalization.schema import NormalizedMetadata, ReferenceMetadata

LOGGER = logging.getLogger(__name__)

EMPTY_METADATA = NormalizedMetadata()


class PayloadShape(str, Enum):
    """Known spell payload layouts."""

    NATIVE_OUTS = "native_outs"
    SPELL_OUTPUTS = "spell_outputs"
    NESTED_DATA = "nested_data"
    DIRECT = "direct"


Resolver = Callable[[Mapping[str, Any]], "Mapping[str, Any] | None"]


def _output_key(key: Any) -> tuple[int, int, str]:
    text = str(key)
    if text.isdigit():
        return (0, int(text), text)
    return (1, 0, text)


def _from_native_outs(payload: Mapping[str, Any]) -> Mapping[str, Any] | None:
    """``native_data.tx.outs[*]``: first object-valued entry of each output."""

    native = payload.get("native_data")
    tx = native.get("tx") if isinstance(native, Mapping) else None
    outs = tx.get("outs") if isinstance(tx, Mapping) else None
    if not isinstance(outs, Sequence) or isinstance(outs, (str, bytes)):
        return None
    for out in outs:
        if not isinstance(out, Mapping):
            continue
        for key in sorted(out, key=_output_key):
            value = out[key]
            # Bare numbers are charm amounts, not metadata.
            if isinstance(value, Mapping) and value:
                return value
    return None


def _from_spell_outputs(payload: Mapping[str, Any]) -> Mapping[str, Any] | None:
    """Legacy ``spell_data.outputs[*].metadata`` layout."""

    spell_data = payload.get("spell_data")
    outputs = spell_data.get("outputs") if isinstance(spell_data, Mapping) else None
    if not isinstance(outputs, Sequence) or isinstance(outputs, (str, bytes)):
        return None
    for output in outputs:
        if isinstance(output, Mapping):
            metadata = output.get("metadata")
            if isinstance(metadata, Mapping) and metadata:
                return metadata
    return None


def _from_charm_outs(payload: Mapping[str, Any]) -> Mapping[str, Any] | None:
    """Oldest indexer layout: ``outs[*].charms[*]``."""

    outs = payload.get("outs")
    if not isinstance(outs, Sequence) or isinstance(outs, (str, bytes)):
        return None
    for out in outs:
        charms = out.get("charms") if isinstance(out, Mapping) else None
        if isinstance(charms, Mapping):
            candidates = [charms[key] for key in sorted(charms, key=_output_key)]
        elif isinstance(charms, Sequence) and not isinstance(charms, (str, bytes)):
            candidates = list(charms)
        else:
            continue
        for candidate in candidates:
            if isinstance(candidate, Mapping) and candidate:
                return candidate
    return None


def _from_nested_data(payload: Mapping[str, Any]) -> Mapping[str, Any] | None:
    nested = payload.get("data")
    if not isinstance(nested, Mapping) or not nested:
        return None
    for resolver in (_from_native_outs, _from_spell_outputs, _from_charm_outs):
        found = resolver(nested)
        if found is not None:
            return found
    return nested


def _from_direct(payload: Mapping[str, Any]) -> Mapping[str, Any] | None:
    if payload.get("name") or payload.get("image"):
        return payload
    return None


PAYLOAD_SHAPES: tuple[tuple[PayloadShape, Resolver], ...] = (
    (PayloadShape.NATIVE_OUTS, _from_native_outs),
    (PayloadShape.SPELL_OUTPUTS, _from_spell_outputs),
    (PayloadShape.NESTED_DATA, _from_nested_data),
    (PayloadShape.DIRECT, _from_direct),
)


def _text(value: Any) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value) if value else None
    if isinstance(value, str):
        return value or None
    return None


def _number(value: Any) -> int | float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value or None
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value)
        except ValueError:
            return None
        if not parsed:
            return None
        return int(parsed) if parsed.is_integer() else parsed
    return None


def _decimals(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _build(metadata: Mapping[str, Any], shape: PayloadShape) -> NormalizedMetadata:
    standard = {key: metadata.get(key) for key in STANDARD_FIELDS}
    extra = {str(key): render_bytes(value) for key, value in metadata.items() if key not in STANDARD_FIELDS}
    return NormalizedMetadata(
        name=_text(standard["name"]),
        ticker=_text(standard["ticker"]) or _text(standard["symbol"]),
        description=_text(standard["description"]),
        image=_text(standard["image"]),
        url=_text(standard["url"]),
        supply_limit=_number(standard["supply_limit"]),
        decimals=_decimals(standard["decimals"]),
        extra_fields=extra,
        raw=metadata,
        source_shape=shape.value,
    )


def parse_spell_metadata(record: Mapping[str, Any] | None) -> NormalizedMetadata:
    """Extract normalized metadata from a raw indexer record.

    The spell payload is read from ``record["data"]``. Shapes are tried in
    :data:`PAYLOAD_SHAPES` order. Any input that matches none of them
    (including ``None``) yields the all-null default.

    Args:
        record: Raw indexer record.

    Returns:
        A :class:`NormalizedMetadata`; never ``None``.
    """

    if not isinstance(record, Mapping):
        return EMPTY_METADATA
    payload = record.get("data")
    if not isinstance(payload, Mapping):
        return EMPTY_METADATA
    for shape, resolver in PAYLOAD_SHAPES:
        metadata = resolver(payload)
        if metadata is not None:
            LOGGER.debug("Spell metadata matched shape %s", shape.value)
            return _build(metadata, shape)
    return EMPTY_METADATA


def _lookup(source: Any, key: str) -> Any:
    if source is None:
        return None
    if isinstance(source, Mapping):
        return source.get(key)
    return getattr(source, key, None)


def _first(*values: Any) -> Any:
    for value in values:
        if value:
            return value
    return None


def display_metadata(
    record: Mapping[str, Any] | None,
    reference: ReferenceMetadata | Mapping[str, Any] | None = None,
) -> NormalizedMetadata:
    """Merge spell metadata with reference-NFT metadata and record columns.

    Spell fields win, then the reference NFT, then the record's own columns
    (``name``, ``image_url``, ``symbol``...).
    """

    spell = parse_spell_metadata(record)
    row = record if isinstance(record, Mapping) else {}

    decimals = spell.decimals
    if decimals is None:
        decimals = _decimals(_lookup(reference, "decimals"))
    if decimals is None:
        decimals = _decimals(row.get("decimals"))

    return NormalizedMetadata(
        name=_text(_first(spell.name, _lookup(reference, "name"), row.get("name"))),
        ticker=_text(_first(spell.ticker, _lookup(reference, "symbol"), row.get("symbol"))),
        description=_text(
            _first(spell.description, _lookup(reference, "description"), row.get("description"))
        ),
        image=_text(_first(spell.image, _lookup(reference, "image_url"), row.get("image_url"))),
        url=_text(_first(spell.url, _lookup(reference, "url"), row.get("url"))),
        supply_limit=_number(
            _first(spell.supply_limit, _lookup(reference, "total_supply"), row.get("supply_limit"))
        ),
        decimals=decimals,
        extra_fields=dict(spell.extra_fields),
        raw=spell.raw,
        source_shape=spell.source_shape,
    )


__all__ = [
    "EMPTY_METADATA",
    "PAYLOAD_SHAPES",
    "PayloadShape",
    "display_metadata",
    "parse_spell_metadata",
]
