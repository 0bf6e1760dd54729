# src/rag/embeddings/embedder_factory.py — v1
"""Build the semantic-recall embedder from Settings.

Providers are registered by dotted class path and imported only when
selected, so the optional SDKs are needed only for the provider in use.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from patternsearch.config.settings import Settings
from patternsearch.rag.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "sentence_transformers"

_PROVIDER_REGISTRY: dict[str, str] = {
    "openai": "patternsearch.rag.embeddings.openai_embedder.OpenAIEmbedder",
    "sentence_transformers": "patternsearch.rag.embeddings.sentence_tf_embedder.SentenceTransformerEmbedder",
}


class UnsupportedEmbeddingProviderError(ValueError):
    """Raised when EMBEDDING_PROVIDER names no registered provider."""


def create_embedder(settings: Settings | None = None) -> BaseEmbedder:
    """Instantiate the configured embedding provider.

    Without settings the local sentence-transformers default is used, which
    needs no API key.

    Raises:
        UnsupportedEmbeddingProviderError: Unknown provider name.
    """
    if settings is None:
        cls = _import_class(_PROVIDER_REGISTRY[DEFAULT_PROVIDER])
        return cls()

    provider = settings.embedding_provider
    class_path = _PROVIDER_REGISTRY.get(provider)
    if class_path is None:
        raise UnsupportedEmbeddingProviderError(
            f"Unsupported embedding provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    kwargs = _provider_kwargs(provider, settings)
    logger.debug("Creating embedder: provider=%s model=%s", provider, kwargs.get("model"))
    return _import_class(class_path)(**kwargs)


def register_embedding_provider(name: str, class_path: str) -> None:
    """Register a custom provider; it is built with ``dimensions`` only."""
    _PROVIDER_REGISTRY[name] = class_path


def _provider_kwargs(provider: str, settings: Settings) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"dimensions": settings.embedding_dimensions}
    if provider == "openai":
        kwargs["model"] = settings.embedding_model
        kwargs["api_key"] = settings.openai_api_key
    elif provider == "sentence_transformers":
        kwargs["model"] = settings.embedding_st_model
    return kwargs


def _import_class(class_path: str) -> type:
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
