"""Disk-based Web resource caching for webextract.

This package provides :class:`CacheStore`, which keeps one file per
request fingerprint inside the session's cache directory and judges
freshness from the file's modification time.

The store is consumed by :class:`~webextract.client.Extractor` and the
batch engine, and is controlled by the ``cache``, ``cache_directory`` and
``cache_age`` fields of :class:`~webextract.models.SessionConfig`.
"""

from webextract.cache.cache import CacheStore

__all__ = ["CacheStore"]
