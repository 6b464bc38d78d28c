"""Identifier helpers and spell metadata normalization for Charms records."""
