"""Slug generation for TOC anchors.

Rules:
1. Unicode NFKD normalization, combining marks dropped
2. Vietnamese d-stroke mapped to ASCII (not decomposed by NFKD)
3. Lowercase
4. Runs of non-alphanumerics collapse to a single hyphen
5. Leading/trailing hyphens trimmed, result capped at 80 chars
6. Empty result falls back to "item"

Slugs are anchors, not identifiers: uniqueness is not required.
"""

import re
import unicodedata

MAX_SLUG_LENGTH = 80
FALLBACK_SLUG = "item"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """Derive a URL-fragment slug from a title.

    Args:
        title: The node title.

    Returns:
        A lowercase ASCII slug, never empty.
    """
    decomposed = unicodedata.normalize("NFKD", title)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    stripped = stripped.replace("đ", "d").replace("Đ", "D")
    slug = _NON_ALNUM.sub("-", stripped.lower()).strip("-")
    slug = slug[:MAX_SLUG_LENGTH].rstrip("-")
    return slug or FALLBACK_SLUG
