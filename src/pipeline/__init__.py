# src/pipeline/__init__.py — v1
"""Search orchestration over pattern sources."""
