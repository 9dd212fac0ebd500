"""Per-request response header capture.

Each in-flight request owns one :class:`HeaderCollector`.  The transport
feeds it raw header lines as responses arrive; lines are split on the
first colon, names are lower-cased and trimmed, values trimmed.  Lines
without a colon (such as the status line) are counted but dropped.

Repeated header names overwrite each other: the last occurrence wins.
Responses from a redirect chain feed the same collector in order, so a
header set by the final response overrides one from an earlier hop.
"""

from __future__ import annotations

from collections.abc import Iterable

import httpx


class HeaderCollector:
    """Accumulates header lines for a single request."""

    def __init__(self) -> None:
        self._headers: dict[str, str] = {}

    def feed(self, line: str) -> int:
        """Record one header line and return the number of characters consumed."""
        name, sep, value = line.partition(":")
        if sep:
            self._headers[name.strip().lower()] = value.strip()
        return len(line)

    def feed_response(self, response: httpx.Response) -> None:
        """Feed the status line and every raw header line of *response*."""
        for line in response_header_lines(response):
            self.feed(line)

    @property
    def headers(self) -> dict[str, str]:
        """A copy of the headers captured so far."""
        return dict(self._headers)


def response_header_lines(response: httpx.Response) -> Iterable[str]:
    """Yield *response*'s status line followed by its raw header lines, in wire order."""
    yield f"{response.http_version} {response.status_code} {response.reason_phrase}\r\n"
    for name, value in response.headers.raw:
        yield f"{name.decode('latin-1')}: {value.decode('latin-1')}\r\n"
