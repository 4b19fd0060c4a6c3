"""Anchor ids for headings and pages"""

import re
import unicodedata


def slugify(text: str) -> str:
    """Lowercase, hyphen-separated ASCII anchor id; '' when nothing is left."""
    text = unicodedata.normalize('NFKD', text).encode('ascii', 'ignore').decode('ascii').lower()
    text = re.sub(r'[^\w\s-]', '', text)
    return re.sub(r'[\s_-]+', '-', text).strip('-')


def unique_slug(text: str, seen: dict[str, int]) -> str:
    """slugify(text), suffixed with -1, -2, ... when an earlier heading took the same id."""
    slug = slugify(text) or 'section'
    count = seen.get(slug, 0)
    seen[slug] = count + 1
    return f"{slug}-{count}" if count else slug
