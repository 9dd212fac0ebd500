"""Streamed httpx responses for MockTransport handlers.

``httpx.Response(content=...)`` loads its body up front, so the fetch
engine never reads it off the wire.  :func:`streamed` hands the body out
in chunks instead, the way a real connection does, keeping any
content-encoding intact until the engine decodes it.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from typing import Optional

import httpx


class ChunkedStream(httpx.SyncByteStream, httpx.AsyncByteStream):
    """A body served in fixed-size chunks to sync and async clients alike."""

    def __init__(self, body: bytes, chunk_size: int = 4) -> None:
        self._body = body
        self._chunk_size = chunk_size

    def __iter__(self) -> Iterator[bytes]:
        for start in range(0, len(self._body), self._chunk_size):
            yield self._body[start : start + self._chunk_size]

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self:
            yield chunk


def streamed(
    status_code: int = 200,
    body: bytes = b"",
    headers: Optional[dict[str, str]] = None,
) -> httpx.Response:
    """Build a response whose body is still unread."""
    return httpx.Response(status_code, headers=headers, stream=ChunkedStream(body))
