# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for cache locations, TTLs, ranking knobs and the
embedding provider used by semantic recall.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Fetch cache ===
    cache_root: Path = Path("~/.swift-patterns/cache")
    cache_default_ttl: int = 86_400
    cache_max_memory_entries: int = 500
    cache_key_hash_threshold: int = 100

    # === Intent cache ===
    intent_cache_ttl: int = 43_200
    intent_cache_max_memory_entries: int = 200

    # === Embeddings ===
    embedding_provider: str = "sentence_transformers"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 384
    embedding_st_model: str = "all-MiniLM-L6-v2"
    openai_api_key: str = ""

    # === Similarity ===
    similarity_backend: Literal["numpy", "sklearn"] = "numpy"

    # === Lexical ranking ===
    lexical_fuzzy: float = 0.2
    lexical_boost_title: float = 2.5
    lexical_boost_topics: float = 1.8
    lexical_boost_content: float = 1.0

    # === Semantic recall ===
    semantic_recall_enabled: bool = False
    semantic_min_lexical_score: float = 0.35
    semantic_min_relevance_score: int = 70
    semantic_embedding_ttl: int = 7 * 86_400
    semantic_max_entries: int = 5000

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("lexical_fuzzy")
    @classmethod
    def validate_fuzzy(cls, v: float) -> float:  # noqa: N805
        if not 0.0 <= v < 1.0:
            raise ValueError("lexical_fuzzy must be in [0, 1)")
        return v

    @field_validator("semantic_min_relevance_score")
    @classmethod
    def validate_min_relevance(cls, v: int) -> int:  # noqa: N805
        if not 0 <= v <= 100:
            raise ValueError("semantic_min_relevance_score must be in [0, 100]")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.cache_default_ttl <= 0 or self.intent_cache_ttl <= 0:
            errors.append("CACHE_DEFAULT_TTL and INTENT_CACHE_TTL must be > 0")

        if self.cache_max_memory_entries < 1 or self.intent_cache_max_memory_entries < 1:
            errors.append("Memory cache sizes must be >= 1")

        if not 0.0 <= self.semantic_min_lexical_score <= 1.0:
            errors.append("SEMANTIC_MIN_LEXICAL_SCORE must be in [0, 1]")

        if self.semantic_recall_enabled and self.semantic_max_entries < 1:
            errors.append("SEMANTIC_RECALL_ENABLED requires SEMANTIC_MAX_ENTRIES >= 1")

        if self.embedding_provider == "openai" and self.semantic_recall_enabled and not self.openai_api_key:
            errors.append("EMBEDDING_PROVIDER=openai requires OPENAI_API_KEY")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def lexical_boost(self) -> dict[str, float]:
        """Field boosts in the shape expected by SearchOptions."""
        return {
            "title": self.lexical_boost_title,
            "topics": self.lexical_boost_topics,
            "content": self.lexical_boost_content,
        }


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-request config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
