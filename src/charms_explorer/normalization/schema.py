"""Canonical schema definitions for normalized charm metadata.

Both models are immutable: parsed metadata is derived fresh from a record on
every call and cache entries are replaced wholesale, never patched.
"""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NormalizedMetadata(BaseModel):
    """Metadata extracted from a spell payload.

    Attributes:
        name: Asset name.
        ticker: Token ticker, falling back to ``symbol``.
        description: Free-form description.
        image: Image URL or ``data:image/...`` URI.
        url: External project URL.
        supply_limit: Maximum supply for tokens.
        decimals: Token decimals; ``0`` is a valid value.
        extra_fields: Every non-standard payload field, byte arrays rendered as hex.
        raw: Payload object the fields were read from.
        source_shape: Name of the payload shape that matched, ``None`` when nothing did.
    """

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    ticker: str | None = None
    description: str | None = None
    image: str | None = None
    url: str | None = None
    supply_limit: int | float | None = None
    decimals: int | None = None
    extra_fields: Dict[str, Any] = Field(default_factory=dict)
    raw: Any = None
    source_shape: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.source_shape is None


class ReferenceMetadata(BaseModel):
    """Reference-NFT metadata shared by every token of one content hash."""

    model_config = ConfigDict(frozen=True)

    app_id: str | None = None
    name: str | None = None
    symbol: str | None = None
    description: str | None = None
    image_url: str | None = None
    url: str | None = None
    total_supply: int | float | None = None
    decimals: int | None = None
    network: str | None = None

    @field_validator("app_id", "name", "symbol", "description", "image_url", "url", "network", mode="before")
    @classmethod
    def _blank_text_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value or None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return None

    @field_validator("total_supply", mode="before")
    @classmethod
    def _coerce_supply(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str):
            try:
                parsed = float(value)
            except ValueError:
                return None
            return int(parsed) if parsed.is_integer() else parsed
        return None

    @field_validator("decimals", mode="before")
    @classmethod
    def _coerce_decimals(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        return None


__all__ = ["NormalizedMetadata", "ReferenceMetadata"]
