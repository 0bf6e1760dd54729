# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides a controllable clock, sample patterns, an in-process embedder and
temp cache directories. No network and no model downloads.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from patternsearch.cache.fetch_cache import FetchCache
from patternsearch.core.models import Pattern
from patternsearch.rag.embeddings.base_embedder import BaseEmbedder


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingEmbedder(BaseEmbedder):
    """Deterministic bag-of-words embedder that records every call."""

    def __init__(self, dimensions: int = 256) -> None:
        self._dimensions = dimensions
        self.document_calls: list[str] = []
        self.query_calls: list[str] = []
        self.fail_with: Exception | None = None

    def _vector(self, text: str) -> list[float]:
        vec = [0.0] * self._dimensions
        for word in text.lower().split():
            slot = int(hashlib.md5(word.encode()).hexdigest(), 16) % self._dimensions
            vec[slot] += 1.0
        return vec

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if self.fail_with is not None:
            raise self.fail_with
        self.document_calls.extend(texts)
        return [self._vector(t) for t in texts]

    async def embed_query(self, query: str) -> list[float]:
        if self.fail_with is not None:
            raise self.fail_with
        self.query_calls.append(query)
        return self._vector(query)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "counting"

    @property
    def model_name(self) -> str:
        return "bag-of-words"


# === FIXTURES: Infrastructure ===


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    root = tmp_path / "cache"
    root.mkdir()
    return root


@pytest.fixture
def fetch_cache(cache_root: Path, clock: FakeClock) -> FetchCache:
    return FetchCache("test", cache_root=cache_root, default_ttl=3600, clock=clock)


@pytest.fixture
def embedder() -> CountingEmbedder:
    return CountingEmbedder()


@pytest.fixture
def make_embedder() -> type[CountingEmbedder]:
    """Builds extra embedders, e.g. with other dimensions."""
    return CountingEmbedder


# === FIXTURES: Sample data ===


@pytest.fixture
def sample_pattern() -> Pattern:
    """Minimal valid Pattern for testing."""
    return Pattern(
        id="sundell-navigation",
        title="SwiftUI Navigation Stack Deep Dive",
        url="https://example.com/navigation",
        excerpt="Programmatic navigation with NavigationStack and paths.",
        content="NavigationStack replaces NavigationView. Use a NavigationPath to drive navigation.",
        topics=["swiftui", "navigation"],
        relevance_score=80,
        has_code=True,
    )


@pytest.fixture
def sample_patterns(sample_pattern: Pattern) -> list[Pattern]:
    """Small corpus with distinct topics."""
    return [
        sample_pattern,
        Pattern(
            id="vanderlee-actors",
            title="Actors and Data Races in Swift Concurrency",
            excerpt="Protect mutable state with actors.",
            content="Actors serialize access to their state. Use async await to call actor methods.",
            topics=["concurrency", "actor"],
            relevance_score=75,
            has_code=True,
        ),
        Pattern(
            id="pointfree-testing",
            title="Testing Reducers",
            excerpt="Exhaustive testing of reducers with TestStore.",
            content="Write tests that assert every state change of a reducer.",
            topics=["testing", "tca"],
            relevance_score=90,
            has_code=False,
        ),
        Pattern(
            id="swiftlee-combine",
            title="Combine Publishers Explained",
            excerpt="Publishers, subscribers and operators.",
            content="A publisher emits values over time. Operators transform the stream.",
            topics=["combine"],
            relevance_score=55,
            has_code=True,
        ),
    ]
