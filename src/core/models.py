# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

Every module imports these types from core.models.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Pattern(BaseModel):
    """A content item produced by a source for one fetch cycle.

    Immutable once produced. A later fetch cycle may yield a new Pattern with
    the same ``id`` but different scalar fields (score, topics).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    url: str = ""
    publish_date: str = ""
    excerpt: str = ""
    content: str = ""
    topics: list[str] = Field(default_factory=list)
    relevance_score: int = Field(default=0, ge=0, le=100)
    has_code: bool = False

    def with_score(self, relevance_score: int) -> Pattern:
        """Return a copy carrying a query-specific relevance score."""
        return self.model_copy(update={"relevance_score": relevance_score})
