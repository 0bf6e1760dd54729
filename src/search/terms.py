# src/search/terms.py — v1
"""Shared tokenization for lexical search and intent-cache keys.

Indexing and query processing must go through the same function so stemmed
forms line up. Intent keys use the same normalization without stemming.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from functools import lru_cache

import snowballstemmer

STOPWORDS = frozenset({
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "shall", "can", "this", "that", "these",
    "those", "it", "its", "they", "them", "their", "we", "our", "you", "your",
    "i", "my", "me", "he", "she", "him", "her", "his", "who", "what", "which",
    "when", "where", "why", "how", "all", "each", "every", "both", "few",
    "more", "most", "other", "some", "such", "no", "not", "only", "same",
    "so", "than", "too", "very", "just", "also", "now", "here", "there",
})

# Domain terms kept verbatim (never stemmed). Hyphenated entries are matched
# whole before hyphen splitting.
PRESERVE_TERMS = frozenset({
    "swift", "swiftui", "uikit", "combine", "async", "await", "actor",
    "struct", "class", "enum", "protocol", "extension", "func", "var", "let",
    "mvvm", "viper", "mvc", "tca", "xctest", "xcode", "ios", "macos",
    "watchos", "tvos", "ipados", "appkit", "foundation", "coredata",
    "cloudkit", "urlsession", "codable", "observable", "published",
    "stateobject", "observedobject", "environmentobject", "binding", "state",
    "swiftdata", "objective-c",
})

_NON_WORD = re.compile(r"[^\w\s-]")

_stemmer = snowballstemmer.stemmer("porter")


@lru_cache(maxsize=16_384)
def stem(token: str) -> str:
    """Porter stem of a single lower-case token."""
    return _stemmer.stemWord(token)


def normalize_tokens(
    text: str, transform: Callable[[str], str] | None = None
) -> list[str]:
    """Split text into normalized tokens.

    Lower-cases, replaces punctuation (except hyphens) with spaces, keeps
    preserved terms whole, splits other hyphenated tokens, drops stop-words
    and single characters, and applies ``transform`` (e.g. a stemmer) to
    every token that is not a preserved term.
    """
    tokens: list[str] = []
    for raw in _NON_WORD.sub(" ", text.lower()).split():
        if raw in PRESERVE_TERMS:
            tokens.append(raw)
            continue
        for sub in raw.split("-"):
            if len(sub) <= 1 or sub in STOPWORDS:
                continue
            if sub in PRESERVE_TERMS or transform is None:
                tokens.append(sub)
            else:
                tokens.append(transform(sub))
    return tokens


def tokenize(text: str) -> list[str]:
    """Search tokenizer: normalized and stemmed."""
    return normalize_tokens(text, stem)
