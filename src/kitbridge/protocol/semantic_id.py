"""Stable, human-readable identifiers for prompt elements."""

from __future__ import annotations

#: Maximum slug length in characters.
_MAX_SLUG_CHARS = 20


def value_to_slug(value: str) -> str:
    """Convert *value* to a URL-safe slug.

    Lower-cases the text, turns spaces, underscores and any other
    non-alphanumeric character into hyphens, collapses hyphen runs, and
    truncates to 20 characters.  Never returns an empty string.
    """
    result: list[str] = []
    prev_hyphen = False
    for ch in value.lower():
        if ch.isalnum():
            result.append(ch)
            prev_hyphen = False
        else:
            if not prev_hyphen and result:
                result.append("-")
            prev_hyphen = True

        if len(result) >= _MAX_SLUG_CHARS:
            break

    slug = "".join(result).rstrip("-")
    return slug or "item"


def generate_semantic_id(element_type: str, index: int, value: str) -> str:
    """Return ``{type}:{index}:{slug}`` for an indexed element."""
    return f"{element_type}:{index}:{value_to_slug(value)}"
