"""Unit tests for spell metadata extraction across payload shapes."""

from charms_explorer.normalization.schema import ReferenceMetadata
from charms_explorer.normalization.spell_parser import (
    PAYLOAD_SHAPES,
    PayloadShape,
    display_metadata,
    parse_spell_metadata,
)


def _native_record(outs):
    return {"identifier": "n/ABCD/tx:0", "data": {"native_data": {"tx": {"outs": outs}}}}


def test_parse_none_returns_all_null_default():
    metadata = parse_spell_metadata(None)

    assert metadata.name is None
    assert metadata.ticker is None
    assert metadata.image is None
    assert metadata.decimals is None
    assert metadata.extra_fields == {}
    assert metadata.raw is None
    assert metadata.source_shape is None


def test_shape_order_is_explicit():
    assert [shape for shape, _ in PAYLOAD_SHAPES] == [
        PayloadShape.NATIVE_OUTS,
        PayloadShape.SPELL_OUTPUTS,
        PayloadShape.NESTED_DATA,
        PayloadShape.DIRECT,
    ]


def test_native_outs_skips_bare_amounts():
    record = _native_record(
        [
            {"0": 1000},
            {"1": {"name": "Bro", "ticker": "BRO", "image": "https://img/bro.png", "decimals": 8}},
        ]
    )

    metadata = parse_spell_metadata(record)

    assert metadata.source_shape == "native_outs"
    assert metadata.name == "Bro"
    assert metadata.ticker == "BRO"
    assert metadata.decimals == 8


def test_native_outs_independent_of_key_order():
    first = _native_record([{"1": {"name": "second"}, "0": {"name": "first"}}])
    second = _native_record([{"0": {"name": "first"}, "1": {"name": "second"}}])

    assert parse_spell_metadata(first).name == parse_spell_metadata(second).name == "first"


def test_spell_outputs_shape_and_symbol_fallback():
    record = {
        "data": {
            "spell_data": {
                "outputs": [
                    {"amount": 5},
                    {"metadata": {"name": "Legacy", "symbol": "LGC", "supply_limit": 0, "decimals": 0}},
                ]
            }
        }
    }

    metadata = parse_spell_metadata(record)

    assert metadata.source_shape == "spell_outputs"
    assert metadata.ticker == "LGC"
    assert metadata.supply_limit is None
    assert metadata.decimals == 0


def test_nested_data_shape_tries_inner_layouts():
    record = {"data": {"data": {"outs": [{"charms": {"0": {"name": "Old", "image": "data:image/png;base64,AA"}}}]}}}

    metadata = parse_spell_metadata(record)

    assert metadata.source_shape == "nested_data"
    assert metadata.name == "Old"
    assert metadata.image == "data:image/png;base64,AA"


def test_direct_shape_and_extra_fields():
    record = {
        "data": {
            "name": "Direct",
            "description": "",
            "url": "https://charms.dev",
            "creator_pubkey": [0, 255, 16],
            "attributes": {"rarity": "rare"},
        }
    }

    metadata = parse_spell_metadata(record)

    assert metadata.source_shape == "direct"
    assert metadata.name == "Direct"
    assert metadata.description is None
    assert metadata.extra_fields == {"creator_pubkey": "0x00ff10", "attributes": {"rarity": "rare"}}
    assert metadata.raw["creator_pubkey"] == [0, 255, 16]


def test_unmatched_payload_returns_default():
    assert parse_spell_metadata({"data": {"amount": 5}}).source_shape is None
    assert parse_spell_metadata({"data": "not-a-map"}).source_shape is None


def test_display_metadata_merges_reference_and_record_columns():
    record = {
        "identifier": "t/ABCD/tx:0",
        "data": {"native_data": {"tx": {"outs": [{"0": 500}]}}},
        "symbol": "ROW",
        "image_url": "https://row/img.png",
    }
    reference = ReferenceMetadata(name="Reference", image_url="https://ref/img.png", decimals=6)

    metadata = display_metadata(record, reference)

    assert metadata.name == "Reference"
    assert metadata.image == "https://ref/img.png"
    assert metadata.ticker == "ROW"
    assert metadata.decimals == 6


def test_display_metadata_prefers_spell_fields():
    record = _native_record([{"0": {"name": "Spell", "decimals": 0}}])

    metadata = display_metadata(record, {"name": "Reference", "decimals": 8})

    assert metadata.name == "Spell"
    assert metadata.decimals == 0
