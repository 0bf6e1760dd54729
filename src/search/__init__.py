# src/search/__init__.py — v1
"""Lexical search: tokenizer and field-boosted fuzzy BM25 ranking."""
