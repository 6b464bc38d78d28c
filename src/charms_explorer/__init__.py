"""charms_explorer: classification and metadata normalization for Charms assets.

This package contains the core of the Charms explorer: identifier helpers,
spell metadata parsing, transaction and asset classification, reference NFT
resolution, and the deduplication/aggregation of raw indexer records.
"""
