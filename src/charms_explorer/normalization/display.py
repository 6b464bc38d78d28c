"""Display helpers for spell metadata values.

Spell payloads routinely embed raw byte arrays (public keys, hashes, proofs)
as JSON arrays of integers. The helpers here detect those arrays, render them
as ``0x`` hex, and format the remaining field values for tabular display.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

LONG_STRING_THRESHOLD = 66
LONG_STRING_EDGE = 10
HEX_EDGE = 8
ELLIPSIS = "…"


def is_byte_array(value: Any) -> bool:
    """Return ``True`` when ``value`` looks like raw bytes.

    A byte array is a non-empty list or tuple whose every element is an
    integer in ``[0, 255]`` (booleans excluded), or a non-empty
    ``bytes``/``bytearray``. Strings never qualify.
    """

    if isinstance(value, (bytes, bytearray)):
        return len(value) > 0
    if not isinstance(value, (list, tuple)) or not value:
        return False
    return all(isinstance(item, int) and not isinstance(item, bool) and 0 <= item <= 255 for item in value)


def hex_of(value: Any) -> str:
    """Render a byte array as a ``0x``-prefixed lowercase hex string."""

    return "0x" + bytes(value).hex()


def compact_hex(hex_string: str, edge: int = HEX_EDGE) -> str:
    """Shorten ``0x``-prefixed hex to ``0x`` + head + ``…`` + tail."""

    digits = hex_string[2:] if hex_string.startswith("0x") else hex_string
    if len(digits) <= edge * 2:
        return hex_string
    return f"0x{digits[:edge]}{ELLIPSIS}{digits[-edge:]}"


def render_bytes(value: Any) -> Any:
    """Recursively replace byte arrays in ``value`` by their full hex form."""

    if is_byte_array(value):
        return hex_of(value)
    if isinstance(value, Mapping):
        return {key: render_bytes(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [render_bytes(item) for item in value]
    return value


def truncate_middle(value: str, edge: int = LONG_STRING_EDGE, threshold: int = LONG_STRING_THRESHOLD) -> str:
    if len(value) <= threshold:
        return value
    return f"{value[:edge]}...{value[-edge:]}"


def format_field_name(field_name: str | None) -> str:
    """Turn ``snake_case`` keys into ``Title Case`` labels."""

    if not field_name:
        return ""
    return " ".join(word[:1].upper() + word[1:] for word in field_name.split("_"))


def format_field_value(value: Any) -> str:
    """Format an arbitrary metadata value for display.

    Args:
        value: Any JSON-compatible value taken from a spell payload.

    Returns:
        ``-`` for missing values, ``Yes``/``No`` for booleans, numbers with
        thousands separators, long strings truncated in the middle, byte
        arrays as compact hex and other containers as JSON.
    """

    if value is None:
        return "-"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (int, float)):
        return f"{value:,}"
    if isinstance(value, str):
        return truncate_middle(value)
    if is_byte_array(value):
        return compact_hex(hex_of(value))
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(render_bytes(value), default=str)
    return str(value)


def is_base64_image(image: Any) -> bool:
    return isinstance(image, str) and image.startswith("data:image/")


def is_image_url(image: Any) -> bool:
    return isinstance(image, str) and image.startswith(("http://", "https://"))


def image_source(image: Any) -> str | None:
    """Return ``image`` when it is displayable (data URI or http(s) URL)."""

    if is_base64_image(image) or is_image_url(image):
        return image
    return None


def has_valid_image(metadata: Any) -> bool:
    """Return ``True`` when ``metadata`` carries a non-empty image string."""

    image = getattr(metadata, "image", None)
    if image is None and isinstance(metadata, Mapping):
        image = metadata.get("image")
    return isinstance(image, str) and len(image) > 0


__all__ = [
    "compact_hex",
    "format_field_name",
    "format_field_value",
    "has_valid_image",
    "hex_of",
    "image_source",
    "is_base64_image",
    "is_byte_array",
    "is_image_url",
    "render_bytes",
    "truncate_middle",
]
