"""File-per-key response cache with modification-time freshness.

Layout: every entry lives at ``<cache_directory>/<key>`` where ``key`` is
the lowercase SHA-1 hex digest of the effective URL concatenated with the
POST body.  There is no file extension and no metadata: the file holds the
response bytes exactly as the transport received them (often still
gzip-framed).  Only status-200 responses are ever written, so a present and
fresh file implies "was a 200 when written".

An entry is fresh while ``now - mtime < cache_age``.  Stale entries are
never deleted; staleness is purely a read-time check, so the directory
grows without bound.

Writes are unlocked overwrites: concurrent writers to one key race and the
last writer wins.  A reader may also find an entry gone between
:meth:`CacheStore.is_fresh` and :meth:`CacheStore.read`; that surfaces as
:class:`~webextract.exceptions.StorageError`.

See Also:
    :class:`~webextract.models.SessionConfig` -- the Pydantic model that
    controls ``cache``, ``cache_directory`` and ``cache_age``.
"""

from __future__ import annotations

import hashlib
import time
from pathlib import Path
from typing import Callable, Optional

from webextract.exceptions import StorageError
from webextract.models import SessionConfig


class CacheStore:
    """Disk-backed cache of raw HTTP response payloads.

    Args:
        directory: Directory holding the cache files.  Created (with
            parents) when caching is enabled and it does not exist.
        cache_age: Time-to-live in seconds.
        enabled: When ``False`` nothing is ever fresh; keys can still be
            computed.
        clock: Returns the current time as a POSIX timestamp.

    Example::

        store = CacheStore("/tmp/web-cache", cache_age=3600)
        key = store.key("https://example.com/", "")
        if store.is_fresh(key):
            raw = store.read(key)
    """

    def __init__(
        self,
        directory: str | Path | None,
        cache_age: int,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        path = Path(directory) if directory is not None else None
        self._enabled = enabled and path is not None
        self._directory = path
        self._cache_age = cache_age
        self._clock = clock
        if enabled and path is not None:
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageError(f"Cannot create cache directory {path}: {exc}") from exc

    @classmethod
    def from_config(cls, config: SessionConfig) -> CacheStore:
        """Build a store from a validated session configuration."""
        return cls(config.cache_directory, config.cache_age, enabled=config.cache)

    @property
    def enabled(self) -> bool:
        """Whether caching is active for this store."""
        return self._enabled

    @property
    def directory(self) -> Optional[Path]:
        """The cache directory, or ``None`` when none was configured."""
        return self._directory

    @staticmethod
    def key(url: str, body: str = "") -> str:
        """Return the cache key for a request.

        The URL is used verbatim: no case folding, trailing-slash or query
        reordering is applied, so callers wanting equivalent URLs to share
        an entry must normalise them first.
        """
        return hashlib.sha1((url + body).encode("utf-8")).hexdigest()

    def path(self, key: str) -> Path:
        """Return the file path of the entry for *key*."""
        if self._directory is None:
            raise StorageError("No cache directory is configured.")
        return self._directory / key

    def age(self, key: str) -> Optional[float]:
        """Seconds since the entry for *key* was last written, or ``None`` if absent."""
        if self._directory is None:
            return None
        try:
            mtime = self.path(key).stat().st_mtime
        except OSError:
            return None
        return self._clock() - mtime

    def is_fresh(self, key: str) -> bool:
        """Return ``True`` iff caching is enabled and the entry is younger than the TTL."""
        if not self._enabled:
            return False
        age = self.age(key)
        return age is not None and age < self._cache_age

    def read(self, key: str) -> bytes:
        """Return the raw bytes stored under *key*.

        Raises:
            StorageError: If the entry is missing or cannot be read.
        """
        path = self.path(key)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError(f"Cannot read cache entry {path}: {exc}") from exc

    def write(self, key: str, raw: bytes) -> None:
        """Overwrite the entry for *key* with *raw*.

        Raises:
            StorageError: If the file cannot be written.
        """
        path = self.path(key)
        try:
            path.write_bytes(raw)
        except OSError as exc:
            raise StorageError(f"Cannot write cache entry {path}: {exc}") from exc
