# src/rag/__init__.py — v1
"""Semantic recall: embedding providers and the vector index."""
