"""Unit tests for identifier parsing and canonical keys."""

import pytest

from charms_explorer.normalization.identifiers import (
    MintReference,
    asset_type_for,
    canonical_key,
    content_hash,
    mint_reference,
    parse_identifier,
    record_identifier,
    reference_identifier_for_token,
)


def test_canonical_key_drops_mint_reference():
    assert canonical_key("t/H/txid1:0") == canonical_key("t/H/txid2:1") == "t/H"
    assert canonical_key("n/ABCD/ff00:3") == "n/ABCD"


@pytest.mark.parametrize("value", ["", None, "no-slash", 42])
def test_canonical_key_rejects_invalid_input(value):
    assert canonical_key(value) is None


@pytest.mark.parametrize("value", ["t/", "n/", "t//txid:0", "n//"])
def test_canonical_key_requires_content_hash_for_grouped_prefixes(value):
    assert canonical_key(value) is None
    assert content_hash(value) is None
    assert parse_identifier(value).canonical_key is None


def test_canonical_key_keeps_other_prefixes_unchanged():
    assert canonical_key("b/DEX/txid:1") == "b/DEX/txid:1"
    assert canonical_key("x/anything") == "x/anything"


def test_content_hash():
    assert content_hash("t/ABCD/txid:0") == "ABCD"
    assert content_hash("n/ABCD") == "ABCD"
    assert content_hash("t//txid:0") is None
    assert content_hash("ABCD") is None


def test_reference_identifier_for_token():
    assert reference_identifier_for_token("t/ABCD/txid:0") == "n/ABCD"
    assert reference_identifier_for_token("n/ABCD/txid:0") is None
    assert reference_identifier_for_token("b/ABCD/txid:0") is None
    assert reference_identifier_for_token(None) is None
    assert reference_identifier_for_token("t/") is None


def test_parse_identifier_extracts_mint_reference():
    parsed = parse_identifier("t/ABCD/deadbeef:2")

    assert parsed.prefix == "t"
    assert parsed.content_hash == "ABCD"
    assert parsed.mint_reference == MintReference(txid="deadbeef", vout=2)
    assert str(parsed.mint_reference) == "deadbeef:2"
    assert parsed.canonical_key == "t/ABCD"


def test_mint_reference_without_vout():
    assert mint_reference("n/ABCD/verification-key") == MintReference(txid="verification-key")
    assert mint_reference("n/ABCD") is None


def test_asset_type_for_prefix():
    assert asset_type_for("n/A/tx:0") == "nft"
    assert asset_type_for("t/A/tx:0") == "token"
    assert asset_type_for("b/A/tx:0") == "dapp"
    assert asset_type_for("z/A/tx:0") == "other"
    assert asset_type_for("") == "other"


def test_record_identifier_field_precedence():
    assert record_identifier({"identifier": "t/A/1:0", "app_id": "n/B/1:0"}) == "t/A/1:0"
    assert record_identifier({"identifier": "", "app_id": "n/B/1:0"}) == "n/B/1:0"
    assert record_identifier({"charmid": "b/C/1:0"}) == "b/C/1:0"
    assert record_identifier({}) is None
    assert record_identifier(None) is None
