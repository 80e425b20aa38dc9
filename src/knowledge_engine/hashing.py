"""Content hashing and deterministic identity."""

import hashlib
import re

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_SLUG = re.compile(r"[^a-z0-9]+")


def normalize_for_comparison(text: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    text = _PUNCTUATION.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def content_hash(title: str, content: str, source: str) -> str:
    """Hash over ``title|content|source``.

    Used for exact-duplicate grouping and to decide whether an item needs
    re-embedding.
    """
    payload = f"{title}|{content}|{source}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def slugify(value: str, max_length: int = 40) -> str:
    slug = _SLUG.sub("-", value.lower()).strip("-")
    return slug[:max_length].rstrip("-") or "item"


def make_item_id(source: str, discriminator: str, content: str) -> str:
    """Build a stable item id from a source discriminator and the content.

    Re-ingesting unchanged content yields the same id.

    Args:
        source: Source type or provenance string
        discriminator: Distinguishes items within one source (title, URL, index)
        content: Item body

    Returns:
        Identifier like ``product-catalog-3f2a9c41d0e7b5a2``
    """
    digest = hashlib.sha256(f"{source}|{discriminator}|{content}".encode("utf-8")).hexdigest()
    return f"{slugify(source)}-{digest[:16]}"
