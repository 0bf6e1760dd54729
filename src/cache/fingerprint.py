# src/cache/fingerprint.py — v1
"""Order-insensitive fingerprints and cache key hashing.

- cache_filename: filesystem-safe record name for a raw cache key
- source_fingerprint: digest of a set of source names
- id_set_fingerprint: cheap additive digest of a document-id collection
- content_hash: digest of the text a semantic embedding was computed from
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable

DEFAULT_HASH_THRESHOLD = 100
SOURCE_FINGERPRINT_LENGTH = 12
CONTENT_HASH_LENGTH = 16

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def cache_filename(key: str, hash_threshold: int = DEFAULT_HASH_THRESHOLD) -> str:
    """Map a raw cache key to a record file name (without extension).

    Keys longer than ``hash_threshold`` are replaced by their SHA-256 hex
    digest; shorter keys have every unsafe character replaced by ``_``.
    """
    if len(key) > hash_threshold:
        return hashlib.sha256(key.encode("utf-8")).hexdigest()
    return _UNSAFE_CHARS.sub("_", key)


def source_fingerprint(sources: Iterable[str]) -> str:
    """Digest of a source-name set, independent of order and duplicates."""
    joined = ",".join(sorted(set(sources)))
    digest = hashlib.sha256(joined.encode("utf-8")).hexdigest()
    return digest[:SOURCE_FINGERPRINT_LENGTH]


def id_set_fingerprint(ids: Iterable[str]) -> str:
    """Additive fingerprint of a document-id collection.

    Sums each character code weighted by its position within the id, wrapped
    to a signed 32-bit integer, so reordering the collection never changes
    the result. Prefixed by the collection size.
    """
    total = 0
    count = 0
    for doc_id in ids:
        count += 1
        for i, ch in enumerate(doc_id):
            total = (total + ord(ch) * (i + 1)) & 0xFFFFFFFF
    if total >= 0x80000000:
        total -= 0x100000000
    return f"{count}:{total}"


def content_hash(text: str) -> str:
    """Short SHA-256 digest of embedding source text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:CONTENT_HASH_LENGTH]
