"""Parsing utilities for free-text stream labels."""

from __future__ import annotations

import re

_MULTIPLIERS: dict[str, int] = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
}

# Addon labels embed sizes anywhere in the text ("💾 4.2 GB", "1.4GB").
_SIZE_IN_TEXT = re.compile(r"(\d+(?:[.,]\d+)?)\s*(TB|GB|MB|KB)\b", re.IGNORECASE)


def parse_size_to_bytes(size_str: str) -> int | None:
    """Parse a size string to bytes.

    Supports formats:
        - "1234" (raw bytes)
        - "4.5 GB"
        - "500 MB"
        - "1.2 TB"

    Args:
        size_str: Size string.

    Returns:
        Size in bytes, or None when the string holds no size.
    """
    if not size_str:
        return None

    text = size_str.strip()
    if text.isdigit():
        return int(text)

    match = re.match(r"([\d.]+)\s*([KMGT]?B)$", text.upper())
    if not match:
        return None

    try:
        value = float(match.group(1))
    except ValueError:
        return None
    return int(value * _MULTIPLIERS[match.group(2)])


def find_size_in_text(text: str) -> int | None:
    """Return the first ``<number> <unit>`` size found anywhere in *text*."""
    if not text:
        return None
    match = _SIZE_IN_TEXT.search(text)
    if not match:
        return None
    number = match.group(1).replace(",", ".")
    return parse_size_to_bytes(f"{number} {match.group(2)}")
