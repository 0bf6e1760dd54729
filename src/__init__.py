# src/__init__.py — v1
"""patternsearch: layered retrieval core for content-pattern queries.

Caches (FetchCache, IntentCache), lexical ranking (LexicalIndex) and the
embedding fallback (SemanticIndex).
"""

from patternsearch.version import __version__

__all__ = ["__version__"]
