"""Indexer client, reference resolution, deduplication and service wiring."""
