"""URL slugs for catalog documents."""

import re
import secrets
import unicodedata
from collections.abc import Callable

MAX_SLUG_LENGTH = 200
SLUG_ATTEMPTS = 3
FALLBACK_SLUG_BASE = "pdf"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str | None) -> str:
    """
    Lower-case ASCII slug: diacritics removed, runs of anything else collapsed
    to a single '-', no leading/trailing dashes, at most 200 characters.

    Scripts with no ASCII decomposition (Devanagari, Bengali) produce "".
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(text))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = _NON_ALNUM.sub("-", stripped.lower().strip()).strip("-")
    return slug[:MAX_SLUG_LENGTH]


def slug_source(*titles: str | None) -> str:
    """Slug from the first title that yields one, else the fallback base."""
    for title in titles:
        slug = slugify(title)
        if slug:
            return slug
    return FALLBACK_SLUG_BASE


def unique_slug(base: str, exists: Callable[[str], bool]) -> str:
    """
    Return `base`, or `base-<6 hex chars>` when taken. Suffixed candidates
    cut `base` so they stay within MAX_SLUG_LENGTH.

    Up to SLUG_ATTEMPTS candidates are checked; the unique index on seoSlug
    rejects the rare collision that survives.
    """
    # "-" plus six hex characters
    stem = base[: MAX_SLUG_LENGTH - 7].rstrip("-") or FALLBACK_SLUG_BASE
    candidate = base
    for _ in range(SLUG_ATTEMPTS):
        if not exists(candidate):
            return candidate
        candidate = f"{stem}-{secrets.token_hex(3)}"
    return candidate
