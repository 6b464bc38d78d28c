"""Reference data for normalization and classification.

This module holds the fixed vocabularies used by the spell parser and the
classifiers: the standard metadata field names, the identifier prefixes, the
allow-list of verified token families and the sats values that mark BRO
mining and minting outputs.
"""

# Identifier prefixes: t/<hash>/<txid>:<vout>, n/<hash>/..., b/<hash>/...
TOKEN_PREFIX = "t"
NFT_PREFIX = "n"
DAPP_PREFIX = "b"

# Prefix -> asset type used when grouping unique assets.
PREFIX_ASSET_TYPES = {
    NFT_PREFIX: "nft",
    TOKEN_PREFIX: "token",
    DAPP_PREFIX: "dapp",
}

# Payload fields with dedicated slots in NormalizedMetadata. Anything else is
# kept verbatim in ``extra_fields``.
STANDARD_FIELDS = frozenset(
    {
        "name",
        "description",
        "image",
        "ticker",
        "symbol",
        "url",
        "supply_limit",
        "decimals",
    }
)

# Content hashes of the official $BRO token family. Matching is exact on the
# content hash segment of the identifier; names and tags are never consulted.
VERIFIED_BRO_HASHES = frozenset(
    {
        "3d7fe7e4cea6121947af73d70e5119bebd8aa5b7edfe74bfaf6e779a1847bd9b",
    }
)

# Charms Cast DEX contract verification keys.
CHARMS_CAST_VKS = {
    "v0.1": "ce0c45fe29f26ff197bf9288e62ad7513941294d513e724854d97bee53e03a45",
    "v0.2": "a471d3fcc436ae7cbc0e0c82a68cdc8e003ee21ef819e1acf834e11c43ce47d8",
}

# Output values (sats) that mark BRO mining and minting transactions.
BRO_MINING_SATS = frozenset({333, 777})
BRO_MINT_SATS = frozenset({330, 1000})

# Tag fragments emitted by the indexer for DEX operations.
DEX_TAGS = {
    "create_ask": "create-ask",
    "create_bid": "create-bid",
    "fulfill_ask": "fulfill-ask",
    "fulfill_bid": "fulfill-bid",
    "cancel": "cancel",
    "partial_fill": "partial-fill",
}
CHARMS_CAST_TAG = "charms-cast"
