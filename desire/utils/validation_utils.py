"""
desire/utils/validation_utils.py

Purpose: Input validation

- Pantry item name normalization (the shared key for mirror and remote)
- Input sanitization
"""

import re
from typing import Iterable, List

from desire.core.exceptions import ValidationError


def sanitize_input(text: str, max_length: int = 200) -> str:
    """
    Sanitizes user input before it is used as a document key.

    Args:
        text: Input text
        max_length: Maximum allowed length

    Returns:
        Sanitized text
    """
    if not text:
        return ""

    text = text[:max_length]

    # Path separators and markup have no place in an ingredient name
    text = re.sub(r"[<>{}\[\]/$]", "", text)

    # Normalize whitespace
    text = " ".join(text.split())

    return text.strip()


def normalize_item_name(name: str) -> str:
    """
    Case-folds an ingredient name into its stable key.

    Raises:
        ValidationError: If nothing is left after sanitizing
    """
    cleaned = sanitize_input(name or "")
    if not cleaned:
        raise ValidationError("Item name is empty", details={"name": name})
    return cleaned.casefold()


def normalize_item_names(names: Iterable[str]) -> List[str]:
    """
    Normalizes a batch of names, dropping duplicates and keeping first-seen order.
    """
    seen = {}
    for name in names:
        seen.setdefault(normalize_item_name(name), None)
    return list(seen)
