import re

_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^\w\-]+", re.ASCII)
_REPEATED_HYPHENS = re.compile(r"-{2,}")


def slugify(text):
    """Convert a string to a URL-safe slug.

    Lowercases and trims the text, turns whitespace runs into hyphens, drops
    everything that isn't an ASCII word character or a hyphen, then collapses
    and trims hyphens. Never raises; ``slugify(slugify(x)) == slugify(x)``.
    """
    slug = str(text).lower().strip()
    slug = _WHITESPACE.sub("-", slug)
    slug = _NON_WORD.sub("", slug)
    slug = _REPEATED_HYPHENS.sub("-", slug)
    return slug.strip("-")


def generate_unique_slug(base_slug, existing_slugs):
    """Return base_slug, or base_slug-N for the first N not in existing_slugs."""
    existing = set(existing_slugs)
    slug = base_slug
    counter = 1

    while slug in existing:
        slug = f"{base_slug}-{counter}"
        counter += 1

    return slug
