"""Bounded-concurrency batch fetching.

:class:`BatchFetcher` turns a list of request entries into one result table
keyed by each entry's *original* URL string:

1. **Preparation** -- at least two entries are required; every entry is
   normalised and its effective (base-prefixed) URL and referer validated
   before any I/O happens.
2. **Cache sweep** -- with caching enabled, entries with a fresh cache
   entry resolve immediately to a body-only
   :class:`~webextract.models.CachedResult`.  If nothing is left, the
   transport is never touched.
3. **Pipeline** -- the remaining entries form a FIFO pending queue.  At
   most ``min(remaining, max_concurrency)`` exchanges are registered with
   the :class:`~webextract.client.transport.Multiplexer` at once.  The
   loop alternates *drive*, *drain completions*, and *wait*.  Each
   completion admits the next pending entry **before** its own record is
   torn down, so the in-flight set stays saturated for the whole run.

A failing exchange never aborts the batch: its transport diagnostic is
recorded in that URL's :attr:`~webextract.models.FetchResult.error`.  The
batch only fails outright on bad arguments, or when a cache entry judged
fresh cannot be read during the sweep.

Everything runs on one event loop thread, so the pending queue, the
in-flight map and the cache are touched without locks.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from webextract.cache import CacheStore
from webextract.client.headers import HeaderCollector
from webextract.client.request import (
    RequestEntry,
    effective_spec,
    normalize_entry,
    prepare_base_url,
    with_base_url,
)
from webextract.client.transport import ExchangeOutcome, Multiplexer, build_request, decode_body
from webextract.exceptions import ArgumentError, StorageError, TransportError
from webextract.models import CachedResult, ExtractResult, FetchResult, RequestSpec
from webextract.output import debug, warning

# Fallback pause when the multiplexer has nothing to wait on.
_IDLE_SLEEP = 0.0001


@dataclass
class InFlightRequest:
    """One dispatched exchange, stored under its correlation token.

    Attributes:
        token: Unique per dispatch, even when two entries share a URL.
        spec: The entry as submitted (its URL keys the result table).
        effective: The base-prefixed, validated spec actually sent.
        handle: The multiplexer handle for the exchange.
        collector: Header capture for this request, or ``None`` when the
            entry did not ask for headers.
    """

    token: str
    spec: RequestSpec
    effective: RequestSpec
    handle: asyncio.Task[ExchangeOutcome]
    collector: Optional[HeaderCollector] = None


def read_cached(cache: CacheStore, key: str) -> CachedResult:
    """Load and decode the cache entry for *key*.

    Raises:
        StorageError: If the entry vanished, is unreadable, or holds a
            corrupt gzip payload.
    """
    raw = cache.read(key)
    try:
        return CachedResult(body=decode_body(raw))
    except TransportError as exc:
        raise StorageError(f"Corrupt cache entry {cache.path(key)}: {exc}") from exc


class BatchFetcher:
    """Fetches many resources under a fixed concurrency ceiling.

    Args:
        cache: The session's cache store (possibly disabled).
        open_client: Returns a fresh :class:`httpx.AsyncClient`; called once
            per batch that needs the network, inside the running loop.
        wait_timeout: Upper bound on one wait step, in seconds.

    Example::

        fetcher = BatchFetcher(cache, lambda: httpx.AsyncClient(verify=False))
        results = await fetcher.fetch_all(["a", "b"], base_url="https://example.com")
    """

    def __init__(
        self,
        cache: CacheStore,
        open_client: Callable[[], httpx.AsyncClient],
        wait_timeout: float = 1.0,
    ) -> None:
        self._cache = cache
        self._open_client = open_client
        self._wait_timeout = wait_timeout
        self.peak_concurrency = 0

    async def fetch_all(
        self,
        entries: Sequence[RequestEntry],
        base_url: str = "",
        max_concurrency: int = 10,
    ) -> dict[str, ExtractResult]:
        """Fetch every entry and return ``{original_url: result}``.

        Raises:
            ArgumentError: Fewer than two entries, a malformed entry or URL,
                or ``max_concurrency < 1``.
            StorageError: A cache entry judged fresh could not be read.
        """
        if len(entries) < 2:
            raise ArgumentError("The entries list must contain more than 1 element.")
        if max_concurrency < 1:
            raise ArgumentError(f"max_concurrency must be at least 1, {max_concurrency} given.")
        base = prepare_base_url(base_url)
        prepared = [self._prepare(entry, base) for entry in entries]

        results, pending = self._sweep_cache(prepared)
        if not pending:
            debug(f"Batch of {len(entries)} resolved entirely from cache")
            return results

        async with self._open_client() as client:
            await self._run_pipeline(Multiplexer(client), client, pending, max_concurrency, results)

        debug(
            f"Batch finished: {len(results)} URL(s), "
            f"peak concurrency {self.peak_concurrency}/{max_concurrency}"
        )
        return results

    # ------------------------------------------------------------------ #
    # Phases
    # ------------------------------------------------------------------ #

    @staticmethod
    def _prepare(entry: RequestEntry, base: str) -> tuple[RequestSpec, RequestSpec]:
        spec = normalize_entry(entry)
        return spec, effective_spec(with_base_url(spec, base))

    def _sweep_cache(
        self, prepared: list[tuple[RequestSpec, RequestSpec]]
    ) -> tuple[dict[str, ExtractResult], list[tuple[RequestSpec, RequestSpec]]]:
        """Resolve fresh cache entries; return the results and what is left to fetch."""
        results: dict[str, ExtractResult] = {}
        if not self._cache.enabled:
            return results, list(prepared)

        pending: list[tuple[RequestSpec, RequestSpec]] = []
        for spec, effective in prepared:
            key = self._cache.key(effective.url, spec.body)
            if self._cache.is_fresh(key):
                results[spec.url] = read_cached(self._cache, key)
                debug(f"Cache hit: {effective.url}")
            else:
                pending.append((spec, effective))
        return results, pending

    async def _run_pipeline(
        self,
        mux: Multiplexer,
        client: httpx.AsyncClient,
        prepared: list[tuple[RequestSpec, RequestSpec]],
        max_concurrency: int,
        results: dict[str, ExtractResult],
    ) -> None:
        pending = deque(prepared)
        in_flight: dict[str, InFlightRequest] = {}

        def admit() -> None:
            spec, effective = pending.popleft()
            token = uuid.uuid4().hex
            collector = HeaderCollector() if spec.capture_headers else None
            handle = mux.add(build_request(client, effective), collector)
            in_flight[token] = InFlightRequest(token, spec, effective, handle, collector)
            debug(f"Dispatched {effective.url} [{token}]")

        try:
            limit = min(len(pending), max_concurrency)
            while pending and len(in_flight) < limit:
                admit()

            while in_flight or pending:
                still_running = await mux.drive()

                completed = 0
                while True:
                    handle = mux.next_completed()
                    if handle is None:
                        break
                    completed += 1
                    record = self._resolve(in_flight, handle)
                    outcome = handle.result()

                    # Refill the freed slot before tearing this record down.
                    if pending:
                        admit()
                    mux.remove(handle)
                    del in_flight[record.token]

                    self._store(record, outcome)
                    results[record.spec.url] = FetchResult(
                        status_code=outcome.status_code,
                        headers=record.collector.headers if record.collector else {},
                        body=outcome.body,
                        elapsed=outcome.elapsed,
                        error=outcome.error,
                    )
                    debug(
                        f"Completed {record.effective.url}: HTTP {outcome.status_code} "
                        f"in {outcome.elapsed:.3f}s"
                        + (f" ({outcome.error})" if outcome.error else "")
                    )

                self.peak_concurrency = max(self.peak_concurrency, mux.peak)
                if still_running and not completed:
                    if await mux.wait(self._wait_timeout) == -1:
                        await asyncio.sleep(_IDLE_SLEEP)
        finally:
            await self._abandon(mux, in_flight)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _resolve(
        in_flight: dict[str, InFlightRequest], handle: asyncio.Task[ExchangeOutcome]
    ) -> InFlightRequest:
        """Find the in-flight record owning *handle* (never matched by URL)."""
        for record in in_flight.values():
            if record.handle is handle:
                return record
        raise RuntimeError("Completed exchange does not belong to this batch")

    @staticmethod
    async def _abandon(mux: Multiplexer, in_flight: dict[str, InFlightRequest]) -> None:
        """Cancel whatever is still in flight and wait for it to unwind.

        Runs before the client closes, so no exchange outlives it.
        """
        if not in_flight:
            return
        handles = [record.handle for record in in_flight.values()]
        for handle in handles:
            mux.remove(handle)
        in_flight.clear()
        debug(f"Abandoned {len(handles)} unfinished exchange(s)")
        await asyncio.gather(*handles, return_exceptions=True)

    def _store(self, record: InFlightRequest, outcome: ExchangeOutcome) -> None:
        """Cache a successful raw payload; failures are reported and skipped."""
        if not self._cache.enabled or outcome.error or not outcome.raw:
            return
        if outcome.status_code != 200:
            return
        key = self._cache.key(record.effective.url, record.spec.body)
        try:
            self._cache.write(key, outcome.raw)
        except StorageError as exc:
            warning(f"Skipped caching {record.effective.url}: {exc}")
            return
        debug(f"Cached {record.effective.url} as {key}")
