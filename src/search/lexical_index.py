# src/search/lexical_index.py — v1
"""Lexical search: fuzzy, prefix-tolerant, field-boosted BM25 over patterns.

SearchIndex is the engine (inverted index per field, BM25+ scoring, OR
across query terms). LexicalIndex wraps it with rebuild-on-change caching
and turns raw engine scores into the 0-100 ranking score:

    relative   = score / best_score * 100
    confidence = min(best_score / 10, 1)
    coverage   = matched_query_terms / query_terms
    combined   = round(relative * confidence * coverage * 0.8 + relevance_score * 0.2)
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from rapidfuzz.distance import Levenshtein

from patternsearch.cache.fingerprint import id_set_fingerprint
from patternsearch.core.models import Pattern
from patternsearch.search.terms import tokenize

logger = logging.getLogger(__name__)

FIELDS: tuple[str, ...] = ("title", "topics", "content")
DEFAULT_BOOST: dict[str, float] = {"title": 2.5, "topics": 1.8, "content": 1.0}
SEARCH_WEIGHT = 0.8

# Term expansion weights
EXACT_WEIGHT = 1.0
PREFIX_WEIGHT = 0.375
FUZZY_WEIGHT = 0.45
MAX_FUZZY_DISTANCE = 6


@dataclass(frozen=True)
class BM25Params:
    k: float = 1.2
    b: float = 0.7
    d: float = 0.5


@dataclass
class SearchOptions:
    """Per-query engine options."""

    fuzzy: float = 0.2
    prefix: bool = True
    boost: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_BOOST))
    min_score: float = 0.0


@dataclass
class SearchHit:
    """Raw engine hit with the processed query terms found in the document."""

    item: Pattern
    score: float
    matches: list[str]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _field_text(pattern: Pattern, name: str) -> str:
    if name == "topics":
        return " ".join(pattern.topics)
    return str(getattr(pattern, name, "") or "")


class SearchIndex:
    """In-memory inverted index over pattern fields."""

    def __init__(
        self, fields: Sequence[str] = FIELDS, bm25: BM25Params | None = None
    ) -> None:
        self._fields = tuple(fields)
        self._bm25 = bm25 or BM25Params()
        self._docs: list[Pattern] = []
        self._positions: dict[str, int] = {}
        self._postings: dict[str, dict[str, dict[int, int]]] = {}
        self._lengths: dict[str, list[int]] = {}
        self._avg_lengths: dict[str, float] = {}
        self._vocabulary: set[str] = set()

    def __len__(self) -> int:
        return len(self._docs)

    @property
    def vocabulary(self) -> frozenset[str]:
        return frozenset(self._vocabulary)

    def add_documents(self, docs: Iterable[Pattern]) -> None:
        """Replace the indexed set with ``docs`` (first occurrence of an id wins)."""
        self._docs = []
        self._positions = {}
        self._postings = {name: {} for name in self._fields}
        self._lengths = {name: [] for name in self._fields}
        self._vocabulary = set()

        for doc in docs:
            if doc.id in self._positions:
                logger.debug("Skipping duplicate document id %s", doc.id)
                continue
            position = len(self._docs)
            self._positions[doc.id] = position
            self._docs.append(doc)

            for name in self._fields:
                tokens = tokenize(_field_text(doc, name))
                self._lengths[name].append(len(tokens))
                postings = self._postings[name]
                for term, tf in Counter(tokens).items():
                    postings.setdefault(term, {})[position] = tf
                    self._vocabulary.add(term)

        count = max(len(self._docs), 1)
        self._avg_lengths = {
            name: (sum(self._lengths[name]) / count) or 1.0 for name in self._fields
        }

    def refresh(self, docs: Iterable[Pattern]) -> bool:
        """Swap in newer Pattern objects for already-indexed ids.

        Returns False (and changes nothing) when ``docs`` holds an id the
        index does not know, which means the index must be rebuilt.
        """
        updates: dict[int, Pattern] = {}
        for doc in docs:
            position = self._positions.get(doc.id)
            if position is None:
                return False
            updates.setdefault(position, doc)
        for position, doc in updates.items():
            self._docs[position] = doc
        return True

    def search(self, query: str, options: SearchOptions | None = None) -> list[SearchHit]:
        """Score every document matching at least one query term (OR semantics)."""
        opts = options or SearchOptions()
        query_terms = list(dict.fromkeys(tokenize(query)))
        if not query_terms or not self._docs:
            return []

        scores: dict[int, float] = {}
        matched_terms: dict[int, set[str]] = {}
        total_docs = len(self._docs)

        for query_term in query_terms:
            for term, weight in self._expand(query_term, opts):
                for name in self._fields:
                    postings = self._postings[name].get(term)
                    if not postings:
                        continue
                    boost = opts.boost.get(name, 1.0)
                    for position, tf in postings.items():
                        score = weight * boost * self._bm25_score(
                            tf, len(postings), total_docs,
                            self._lengths[name][position], self._avg_lengths[name],
                        )
                        scores[position] = scores.get(position, 0.0) + score
                        matched_terms.setdefault(position, set()).add(query_term)

        hits: list[SearchHit] = []
        for position, raw_score in scores.items():
            # Documents matching more distinct query terms rank higher
            score = raw_score * len(matched_terms[position])
            if score < opts.min_score:
                continue
            doc = self._docs[position]
            hits.append(SearchHit(item=doc, score=score, matches=_find_matches(doc, query_terms)))

        hits.sort(key=lambda h: h.score, reverse=True)
        return hits

    def _expand(self, query_term: str, opts: SearchOptions) -> list[tuple[str, float]]:
        """Index terms matching ``query_term`` exactly, by prefix, or within edit distance."""
        length = len(query_term)
        if 0 < opts.fuzzy < 1:
            max_distance = min(MAX_FUZZY_DISTANCE, _round_half_up(length * opts.fuzzy))
        else:
            max_distance = int(opts.fuzzy)

        expansions: list[tuple[str, float]] = []
        for term in self._vocabulary:
            if term == query_term:
                expansions.append((term, EXACT_WEIGHT))
            elif opts.prefix and term.startswith(query_term):
                extra = len(term) - length
                expansions.append((term, PREFIX_WEIGHT * length / (length + 0.3 * extra)))
            elif max_distance > 0 and abs(len(term) - length) <= max_distance:
                distance = Levenshtein.distance(query_term, term, score_cutoff=max_distance)
                if distance <= max_distance:
                    expansions.append((term, FUZZY_WEIGHT * length / (length + distance)))
        return expansions

    def _bm25_score(
        self, tf: int, matching: int, total: int, length: int, avg_length: float
    ) -> float:
        p = self._bm25
        idf = math.log(1 + (total - matching + 0.5) / (matching + 0.5))
        return idf * (p.d + tf * (p.k + 1) / (tf + p.k * (1 - p.b + p.b * length / avg_length)))


def _find_matches(doc: Pattern, query_terms: Sequence[str]) -> list[str]:
    """Processed query terms that occur in the document text."""
    haystack = f"{doc.title} {doc.content} {' '.join(doc.topics)}".lower()
    return [term for term in query_terms if term in haystack]


class LexicalIndex:
    """Ranks a pattern set against a query, rebuilding only when the id set changes."""

    def __init__(self, fields: Sequence[str] = FIELDS) -> None:
        self._fields = tuple(fields)
        self._engine: SearchIndex | None = None
        self._fingerprint: str | None = None
        self.rebuild_count = 0

    def search(
        self,
        patterns: Sequence[Pattern],
        query: str,
        options: SearchOptions | None = None,
    ) -> list[Pattern]:
        """Return copies of matching patterns scored 0-100, best first."""
        opts = options or SearchOptions()
        fingerprint = id_set_fingerprint(p.id for p in patterns)

        if (
            self._engine is None
            or self._fingerprint != fingerprint
            or not self._engine.refresh(patterns)
        ):
            engine = SearchIndex(self._fields)
            engine.add_documents(patterns)
            self._engine = engine
            self._fingerprint = fingerprint
            self.rebuild_count += 1
            logger.debug("Rebuilt lexical index over %d patterns", len(engine))

        hits = self._engine.search(query, opts)
        return rank_hits(hits, query)

    def invalidate(self) -> None:
        """Drop the cached engine (next search rebuilds)."""
        self._engine = None
        self._fingerprint = None


def rank_hits(hits: Sequence[SearchHit], query: str) -> list[Pattern]:
    """Convert raw hits to patterns carrying the combined 0-100 score."""
    if not hits:
        return []

    query_term_count = len(dict.fromkeys(tokenize(query)))
    best = max(h.score for h in hits)
    confidence = min(best / 10, 1.0)

    ranked: list[Pattern] = []
    for hit in hits:
        relative = hit.score / best * 100 if best > 0 else 0.0
        coverage = len(hit.matches) / query_term_count if query_term_count > 0 else 1.0
        normalized = relative * confidence * coverage
        ranked.append(hit.item.with_score(combine_scores(normalized, hit.item.relevance_score)))

    ranked.sort(key=lambda p: p.relevance_score, reverse=True)
    return ranked


def combine_scores(
    search_score: float, static_score: float, search_weight: float = SEARCH_WEIGHT
) -> int:
    """Blend a query-aware score with static quality, both on a 0-100 scale."""
    static_weight = round(1 - search_weight, 10)
    combined = _round_half_up(search_score * search_weight + static_score * static_weight)
    return max(0, min(100, combined))


def fuzzy_search(
    docs: Iterable[Pattern], query: str, options: SearchOptions | None = None
) -> list[SearchHit]:
    """One-shot search over ``docs`` without keeping an index."""
    index = SearchIndex()
    index.add_documents(docs)
    return index.search(query, options)


def suggest_similar(
    term: str,
    known_terms: Iterable[str],
    max_suggestions: int = 3,
    max_distance: int = 2,
) -> list[str]:
    """Known terms within ``max_distance`` edits of ``term``, closest first."""
    needle = term.lower()
    candidates: list[tuple[int, str]] = []
    for known in set(known_terms):
        distance = Levenshtein.distance(needle, known.lower(), score_cutoff=max_distance)
        if 0 < distance <= max_distance:
            candidates.append((distance, known))
    candidates.sort()
    return [known for _, known in candidates[:max_suggestions]]
