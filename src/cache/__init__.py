# src/cache/__init__.py — v1
"""TTL caches: FetchCache (key/value) and IntentCache (whole query results)."""
