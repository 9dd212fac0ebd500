"""HTTP exchanges over :mod:`httpx` and the asyncio-based transport multiplexer.

This module owns everything that touches the wire:

* :func:`client_options` -- keyword arguments shared by the session's
  :class:`httpx.Client` and :class:`httpx.AsyncClient` (baseline headers,
  user agent, cookie jar, redirect policy, TLS verification off).
* :func:`build_request` -- one GET, or a POST when the :class:`RequestSpec` has a body.
* :func:`perform` / :func:`perform_async` -- run one exchange, feed the
  response headers to the request's :class:`HeaderCollector`, and read the
  body *raw* (still content-encoded) so it can be cached byte-for-byte.
* :class:`Multiplexer` -- many concurrent exchanges on one event loop,
  exposed as drive / next-completion / wait operations.  It never limits
  concurrency itself; that is the batch scheduler's job.
"""

from __future__ import annotations

import asyncio
import gzip
import sys
import time
import zlib
from collections import deque
from dataclasses import dataclass
from http.cookiejar import CookieJar
from typing import Any, Optional

import httpx

from webextract.client.headers import HeaderCollector
from webextract.exceptions import TransportError
from webextract.models import RequestSpec, SessionConfig

BASELINE_HEADERS: dict[str, str] = {
    "accept": "text/html, application/xhtml+xml, application/xml;q=0.9, */*;q=0.8",
    "accept-charset": "utf-8, windows-1251;q=0.7, *;q=0.7",
    "accept-language": "en-us, en;q=0.5",
    "accept-encoding": "gzip",
    "cache-control": "no-cache",
}

_GZIP_MAGIC = b"\x1f\x8b"


@dataclass
class ExchangeOutcome:
    """What one finished exchange produced.

    ``raw`` is the body exactly as received; ``body`` is its decoded form.
    ``error`` is empty unless the exchange failed at the transport level.
    """

    status_code: int = 0
    raw: bytes = b""
    body: bytes = b""
    elapsed: float = 0.0
    error: str = ""


def client_options(
    config: SessionConfig,
    cookies: Optional[CookieJar] = None,
    transport: Any = None,
) -> dict[str, Any]:
    """Build the keyword arguments for an httpx client bound to *config*.

    ``max_redirects=-1`` means unlimited and is mapped to ``sys.maxsize``.
    """
    max_redirects = config.max_redirects if config.max_redirects >= 0 else sys.maxsize
    options: dict[str, Any] = {
        "headers": {**BASELINE_HEADERS, "user-agent": config.user_agent},
        "verify": False,
        "follow_redirects": config.follow_redirects,
        "max_redirects": max_redirects,
        "timeout": config.timeout,
    }
    if cookies is not None:
        options["cookies"] = cookies
    if transport is not None:
        options["transport"] = transport
    return options


def build_request(client: httpx.Client | httpx.AsyncClient, spec: RequestSpec) -> httpx.Request:
    """Build the request for an already-validated spec whose referer is filled in."""
    headers = {"referer": spec.referer}
    if spec.body:
        headers["content-type"] = "application/x-www-form-urlencoded"
        return client.build_request("POST", spec.url, headers=headers, content=spec.body)
    return client.build_request("GET", spec.url, headers=headers)


def decode_body(raw: bytes) -> bytes:
    """Return *raw* gunzipped when it is gzip-framed, unchanged otherwise.

    Raises:
        TransportError: If the payload looks gzip-framed but cannot be
            decompressed.
    """
    if not raw.startswith(_GZIP_MAGIC):
        return raw
    try:
        return gzip.decompress(raw)
    except (OSError, EOFError, zlib.error) as exc:
        raise TransportError(f"Cannot decode gzip response body: {exc}") from exc


def _error_text(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


def _raw_body(response: httpx.Response) -> Optional[bytes]:
    """Return the body a transport already loaded, or ``None`` when it is still unread.

    httpx content-decodes a body it loads eagerly, so that payload is
    cached decoded rather than byte-for-byte.
    """
    if response.is_stream_consumed:
        return response.content
    return None


def _capture(response: httpx.Response, collector: Optional[HeaderCollector]) -> None:
    if collector is None:
        return
    for hop in response.history:
        collector.feed_response(hop)
    collector.feed_response(response)


def perform(
    client: httpx.Client,
    request: httpx.Request,
    collector: Optional[HeaderCollector] = None,
) -> ExchangeOutcome:
    """Run one blocking exchange.

    Raises:
        TransportError: On any transport failure, carrying httpx's
            diagnostic text.
    """
    started = time.perf_counter()
    try:
        response = client.send(request, stream=True)
        try:
            _capture(response, collector)
            raw = _raw_body(response)
            if raw is None:
                raw = b"".join(response.iter_raw())
        finally:
            response.close()
    except (httpx.HTTPError, httpx.StreamError) as exc:
        raise TransportError(
            f"Failed to extract a Web resource [{request.url}]: {_error_text(exc)}"
        ) from exc
    elapsed = time.perf_counter() - started
    return ExchangeOutcome(
        status_code=response.status_code,
        raw=raw,
        body=decode_body(raw),
        elapsed=elapsed,
    )


async def perform_async(
    client: httpx.AsyncClient,
    request: httpx.Request,
    collector: Optional[HeaderCollector] = None,
) -> ExchangeOutcome:
    """Run one exchange on the event loop.

    Never raises for a failed exchange: every error is reported through
    :attr:`ExchangeOutcome.error` together with whatever status was seen.
    Cancellation still propagates.
    """
    outcome = ExchangeOutcome()
    started = time.perf_counter()
    try:
        response = await client.send(request, stream=True)
        outcome.status_code = response.status_code
        try:
            _capture(response, collector)
            raw = _raw_body(response)
            if raw is None:
                raw = b"".join([chunk async for chunk in response.aiter_raw()])
        finally:
            await response.aclose()
        outcome.raw = raw
        outcome.body = decode_body(outcome.raw)
    except TransportError as exc:
        outcome.error = str(exc)
    except Exception as exc:
        # Reported against this exchange only; the rest of the batch carries on.
        outcome.error = _error_text(exc)
    outcome.elapsed = time.perf_counter() - started
    return outcome


class Multiplexer:
    """Runs many exchanges concurrently on the current event loop.

    Each registered exchange becomes an :class:`asyncio.Task` (its
    *handle*).  Finished handles are queued in completion order and handed
    out one at a time by :meth:`next_completed`.

    Args:
        client: The async client every exchange is sent through.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client
        self._running: set[asyncio.Task[ExchangeOutcome]] = set()
        self._finished: deque[asyncio.Task[ExchangeOutcome]] = deque()
        self.peak = 0

    @property
    def running(self) -> int:
        """Number of registered exchanges that have not finished yet."""
        return len(self._running)

    def add(
        self, request: httpx.Request, collector: Optional[HeaderCollector] = None
    ) -> asyncio.Task[ExchangeOutcome]:
        """Register one exchange and return its handle."""
        task = asyncio.ensure_future(perform_async(self._client, request, collector))
        self._running.add(task)
        self.peak = max(self.peak, len(self._running))
        task.add_done_callback(self._on_done)
        return task

    def remove(self, task: asyncio.Task[ExchangeOutcome]) -> None:
        """Detach a handle; an unfinished one is cancelled."""
        self._running.discard(task)
        if not task.done():
            task.cancel()

    async def drive(self) -> int:
        """Let every runnable exchange make progress; return how many are still running."""
        await asyncio.sleep(0)
        return len(self._running)

    def next_completed(self) -> Optional[asyncio.Task[ExchangeOutcome]]:
        """Pop the next finished handle, or ``None`` when nothing new has finished."""
        if not self._finished:
            return None
        return self._finished.popleft()

    async def wait(self, timeout: float) -> int:
        """Block until an exchange finishes or *timeout* elapses.

        Returns the number of exchanges that became ready, or ``-1`` when
        there is nothing to wait on.
        """
        if not self._running:
            return -1
        done, _ = await asyncio.wait(
            set(self._running), timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
        return len(done)

    def _on_done(self, task: asyncio.Task[ExchangeOutcome]) -> None:
        if task in self._running:
            self._running.discard(task)
            self._finished.append(task)
