"""URL slug generation for posts and categories."""

from __future__ import annotations

import re
import unicodedata
from typing import Iterable

_SEPARATOR_RUN = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Convert text into a lowercase, hyphen-separated, ASCII-only slug.

    Accented characters are folded to their ASCII base letter; anything else
    outside ``[a-z0-9]`` collapses into a single hyphen. The result may be
    empty when the text holds no usable characters.
    """
    normalized = unicodedata.normalize("NFKD", str(text))
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii")
    return _SEPARATOR_RUN.sub("-", ascii_text.lower().strip()).strip("-")


def generate_unique_slug(
    text: str,
    existing_slugs: Iterable[str] = (),
    fallback: str = "untitled",
) -> str:
    """Generate a slug that does not collide with ``existing_slugs``.

    Collisions are resolved by appending ``-1``, ``-2``, ... to the base slug.

    Args:
        text: Title or name to derive the slug from
        existing_slugs: Slugs already in use
        fallback: Base slug used when ``text`` produces an empty slug

    Returns:
        str: A slug not present in ``existing_slugs``
    """
    taken = set(existing_slugs)
    base_slug = slugify(text) or fallback

    if base_slug not in taken:
        return base_slug

    counter = 1
    while f"{base_slug}-{counter}" in taken:
        counter += 1

    return f"{base_slug}-{counter}"
