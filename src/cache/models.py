# src/cache/models.py — v1
"""Cache domain models: CacheEntry, tagged lookups, intent keys and cached results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

from patternsearch.core.models import Pattern

T = TypeVar("T")


class HttpMeta(BaseModel):
    """Validators a fetch collaborator can use to revalidate a stale entry."""

    etag: str | None = None
    last_modified: str | None = None


class CacheEntry(BaseModel):
    """Single persisted cache record."""

    key: str
    payload: Any = None
    written_at: float
    ttl_seconds: float
    http_meta: HttpMeta | None = None

    def expires_at(self) -> float:
        return self.written_at + self.ttl_seconds

    def is_live(self, now: float) -> bool:
        """An entry is live iff now < written_at + ttl_seconds."""
        return now < self.expires_at()


# --- Tagged lookup results ---


@dataclass(frozen=True)
class Hit(Generic[T]):
    """Live entry found."""

    value: T
    entry: CacheEntry


@dataclass(frozen=True)
class Stale(Generic[T]):
    """Entry found but its TTL has lapsed."""

    value: T
    entry: CacheEntry


@dataclass(frozen=True)
class Miss:
    """Never set, removed, or unreadable."""


CacheLookup = Union[Hit[Any], Stale[Any], Miss]


# --- Intent cache models ---


class IntentKey(BaseModel):
    """Canonical description of what a caller asked for."""

    model_config = ConfigDict(frozen=True)

    tool: str
    query: str
    min_quality: int = 60
    sources: list[str] = Field(default_factory=list)
    require_code: bool = False


class StorableSearchResult(BaseModel):
    """Result handed to the intent cache by a producer."""

    pattern_ids: list[str]
    scores: dict[str, int] = Field(default_factory=dict)
    total_count: int = 0
    patterns: list[Pattern] | None = None

    @classmethod
    def from_patterns(cls, patterns: list[Pattern], include_patterns: bool = True) -> StorableSearchResult:
        """Build a storable result from an ordered pattern list."""
        return cls(
            pattern_ids=[p.id for p in patterns],
            scores={p.id: p.relevance_score for p in patterns},
            total_count=len(patterns),
            patterns=list(patterns) if include_patterns else None,
        )


class CachedSearchResult(StorableSearchResult):
    """Stored result stamped with the source fingerprint and write time.

    ``source_fingerprint`` is nullable so that records written before the
    field existed still decode; they never match a computed fingerprint.
    """

    source_fingerprint: str | None = None
    timestamp: float = 0.0


class CacheStats(BaseModel):
    """Hit/miss counters of an intent cache."""

    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0
