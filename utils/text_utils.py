"""
Text utilities for store-facing identifiers.
"""

import re
import unicodedata
from typing import Optional


_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify_handle(title: Optional[str]) -> str:
    """
    Build a store handle from a product title.

    Lowercase alphanumerics joined by single hyphens:
    - "Summer T-Shirt (2024)" → "summer-t-shirt-2024"
    - "  Café Crème  " → "cafe-creme"
    - "!!!" → ""

    Args:
        title: Product title

    Returns:
        Handle string, empty when the title has no alphanumerics
    """
    if not title:
        return ""

    # Fold accents so "Café" becomes "cafe" rather than "caf"
    normalized = unicodedata.normalize('NFD', title)
    ascii_title = ''.join(
        c for c in normalized
        if unicodedata.category(c) != 'Mn'
    )

    return _NON_ALNUM.sub("-", ascii_title.lower()).strip("-")


def is_blank(value: Optional[str]) -> bool:
    """True for None, empty or whitespace-only strings."""
    return value is None or not value.strip()
