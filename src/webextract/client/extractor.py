"""Session facade for single and batch Web resource extraction.

This module provides :class:`Extractor`, the object callers hold for the
lifetime of a session.  It owns the validated
:class:`~webextract.models.SessionConfig`, the
:class:`~webextract.cache.CacheStore`, the cookie jar shared by every
exchange, and a lazily opened :class:`httpx.Client` for single fetches.
Batches go through :class:`~webextract.client.batch.BatchFetcher` on a
fresh :class:`httpx.AsyncClient` that shares the same cookie jar.

Cookie jar placement:

* caching disabled -- an ephemeral ``cookies*`` temp file, deleted on
  :meth:`Extractor.close`;
* caching enabled -- ``<cache_directory>/cookies.txt``, kept between
  sessions.

The jar is saved after every single fetch and every batch.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from collections.abc import Sequence
from http.cookiejar import LoadError, MozillaCookieJar
from pathlib import Path
from typing import Any, Optional

import httpx

from webextract.cache import CacheStore
from webextract.client.batch import BatchFetcher, read_cached
from webextract.client.headers import HeaderCollector
from webextract.client.request import RequestEntry, effective_spec
from webextract.client.transport import build_request, client_options, perform
from webextract.config import check_max_redirects, validate_session_config
from webextract.exceptions import StorageError
from webextract.models import ExtractResult, FetchResult, RequestSpec, SessionConfig
from webextract.output import debug

_COOKIE_FILENAME = "cookies.txt"


class Extractor:
    """Fetches Web resources, serving fresh cache entries when caching is on.

    Args:
        config: Session settings.  Validated on construction; ``None`` means
            defaults (no caching, no redirects).
        transport: Optional httpx transport used by both the sync and async
            clients (tests pass an :class:`httpx.MockTransport`).

    Raises:
        ConfigurationError: Caching enabled without a directory or a
            positive ``cache_age``.
        ArgumentError: ``max_redirects`` below ``-1``.

    Example::

        with Extractor(build_session_config(cache=True, cache_directory="/tmp/web", cache_age=600)) as ex:
            page = ex.fetch("https://example.com/")
            table = ex.fetch_all(["https://example.com/a", "https://example.com/b"])
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        transport: Any = None,
    ) -> None:
        self._config = validate_session_config(config or SessionConfig())
        self._transport = transport
        self._cache = CacheStore.from_config(self._config)
        self._cookie_path, self._ephemeral_jar = self._cookie_jar_location()
        self._cookies = self._load_cookies()
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> Extractor:
        self._ensure_client()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client, persist cookies, and drop an ephemeral jar file."""
        if self._client is not None:
            self._client.close()
            self._client = None
        if self._ephemeral_jar:
            try:
                os.unlink(self._cookie_path)
            except FileNotFoundError:
                pass
        else:
            self._save_cookies()

    # ------------------------------------------------------------------ #
    # Session settings
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> SessionConfig:
        """The validated session configuration."""
        return self._config

    @property
    def cache(self) -> CacheStore:
        """The session's cache store."""
        return self._cache

    @property
    def cookie_jar_path(self) -> Path:
        """Where the session's cookies are persisted."""
        return self._cookie_path

    def set_user_agent(self, user_agent: str) -> None:
        """Use *user_agent* (trimmed) for subsequent requests."""
        self._reconfigure(user_agent=user_agent.strip())

    def follow_location(self, max_redirects: int = -1) -> None:
        """Set the redirect policy for subsequent requests.

        ``-1`` follows without limit, ``0`` disables following, and any
        positive count bounds it.

        Raises:
            ArgumentError: If *max_redirects* is below ``-1``.
        """
        check_max_redirects(max_redirects)
        self._reconfigure(max_redirects=max_redirects, follow_redirects=max_redirects != 0)

    # ------------------------------------------------------------------ #
    # Fetching
    # ------------------------------------------------------------------ #

    def fetch(
        self,
        url: str | RequestSpec,
        referer: str = "",
        body: str = "",
        capture_headers: bool = True,
        bypass_cache: bool = False,
    ) -> ExtractResult:
        """Fetch one resource.

        A fresh cache hit returns a body-only
        :class:`~webextract.models.CachedResult` without any network I/O.
        Otherwise the full :class:`~webextract.models.FetchResult` is
        returned, and a non-empty status-200 body is cached.

        Args:
            url: Absolute URL, or a ready-made spec (other arguments are
                then ignored).
            referer: Referer header; empty means the URL itself.
            body: POST body; non-empty switches the request to POST.
            capture_headers: Collect response headers into the result.
            bypass_cache: Neither read from nor write to the cache.

        Raises:
            ArgumentError: Malformed URL or referer.
            TransportError: The exchange failed; no partial result is given.
            StorageError: A fresh entry could not be read, or the response
                could not be cached.
        """
        if isinstance(url, RequestSpec):
            spec = url
        else:
            spec = RequestSpec(url=url, referer=referer, body=body, capture_headers=capture_headers)
        spec = effective_spec(spec)

        use_cache = self._cache.enabled and not bypass_cache
        key = self._cache.key(spec.url, spec.body)
        if use_cache and self._cache.is_fresh(key):
            debug(f"Cache hit: {spec.url}")
            return read_cached(self._cache, key)

        client = self._ensure_client()
        collector = HeaderCollector() if spec.capture_headers else None
        debug(f"{'POST' if spec.body else 'GET'} {spec.url}")
        outcome = perform(client, build_request(client, spec), collector)
        # A failed exchange leaves its cookies to the next save or to close().
        self._save_cookies()

        if use_cache and outcome.raw and outcome.status_code == 200:
            self._cache.write(key, outcome.raw)
            debug(f"Cached {spec.url} as {key}")

        return FetchResult(
            status_code=outcome.status_code,
            headers=collector.headers if collector else {},
            body=outcome.body,
            elapsed=outcome.elapsed,
        )

    def fetch_all(
        self,
        entries: Sequence[RequestEntry],
        base_url: str = "",
        max_concurrency: int = 10,
    ) -> dict[str, ExtractResult]:
        """Fetch many resources concurrently; see :meth:`fetch_all_async`.

        Must not be called from inside a running event loop.
        """
        return asyncio.run(self.fetch_all_async(entries, base_url, max_concurrency))

    async def fetch_all_async(
        self,
        entries: Sequence[RequestEntry],
        base_url: str = "",
        max_concurrency: int = 10,
    ) -> dict[str, ExtractResult]:
        """Fetch many resources with at most *max_concurrency* exchanges in flight.

        Args:
            entries: Bare URLs and/or ``(url, referer, body[, capture_headers])``
                sequences.  At least two are required.
            base_url: Prefixed to every URL and non-empty referer.  The
                result table is still keyed by the URLs as given.
            max_concurrency: Ceiling on simultaneously running exchanges.

        Returns:
            ``{url: result}`` with one entry per distinct submitted URL.
            Per-URL transport failures appear as a non-empty
            :attr:`~webextract.models.FetchResult.error`.

        Raises:
            ArgumentError: Fewer than two entries or a malformed URL.
            StorageError: A cache entry judged fresh could not be read.
        """
        fetcher = BatchFetcher(self._cache, self._open_async_client, self._config.wait_timeout)
        results = await fetcher.fetch_all(entries, base_url, max_concurrency)
        self._save_cookies()
        return results

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _ensure_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                **client_options(self._config, self._cookies, self._transport)
            )
        return self._client

    def _open_async_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            limits=httpx.Limits(max_connections=None, max_keepalive_connections=None),
            **client_options(self._config, self._cookies, self._transport),
        )

    def _reconfigure(self, **changes: Any) -> None:
        """Apply config changes; the sync client is rebuilt on next use."""
        self._config = self._config.model_copy(update=changes)
        if self._client is not None:
            self._client.close()
            self._client = None

    def _cookie_jar_location(self) -> tuple[Path, bool]:
        if self._cache.enabled and self._cache.directory is not None:
            return self._cache.directory / _COOKIE_FILENAME, False
        fd, name = tempfile.mkstemp(prefix="cookies")
        os.close(fd)
        return Path(name), True

    def _load_cookies(self) -> MozillaCookieJar:
        jar = MozillaCookieJar(str(self._cookie_path))
        try:
            if self._cookie_path.is_file() and self._cookie_path.stat().st_size > 0:
                jar.load(ignore_discard=True, ignore_expires=True)
        except (LoadError, OSError) as exc:
            raise StorageError(f"Cannot load cookie jar {self._cookie_path}: {exc}") from exc
        return jar

    def _save_cookies(self) -> None:
        try:
            self._cookies.save(ignore_discard=True, ignore_expires=True)
        except OSError as exc:
            raise StorageError(f"Cannot save cookie jar {self._cookie_path}: {exc}") from exc
