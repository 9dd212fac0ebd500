"""Request entry normalisation and URL validation.

Batch entries arrive in two forms:

* a bare URL string, which expands to ``RequestSpec(url, referer="",
  body="", capture_headers=True)`` -- bare URLs always capture headers;
* an explicit ``(url, referer, body[, capture_headers])`` sequence, which
  only captures headers when its fourth element says so.

Everything downstream works on :class:`~webextract.models.RequestSpec`.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Union

import httpx

from webextract.exceptions import ArgumentError
from webextract.models import RequestSpec

RequestEntry = Union[str, RequestSpec, Sequence[Any]]


def validate_url(url: str) -> str:
    """Return *url* if it is a syntactically valid absolute URL.

    A scheme and a host must both be present.  Non-ASCII characters are
    rejected; internationalised URLs must arrive percent-encoded.

    Raises:
        ArgumentError: If the URL is malformed, relative or not ASCII.
    """
    if not isinstance(url, str) or not url or not url.isascii():
        raise ArgumentError(f'Argument must be a valid URL, "{url}" given.')
    if any(ch.isspace() for ch in url):
        raise ArgumentError(f'Argument must be a valid URL, "{url}" given.')
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ArgumentError(f'Argument must be a valid URL, "{url}" given.') from exc
    if not parsed.scheme or not parsed.host:
        raise ArgumentError(f'Argument must be a valid URL, "{url}" given.')
    return url


def normalize_entry(entry: RequestEntry) -> RequestSpec:
    """Turn one batch entry into a :class:`~webextract.models.RequestSpec`.

    Raises:
        ArgumentError: If the entry is neither a string nor a 3-4 element
            sequence.
    """
    if isinstance(entry, RequestSpec):
        return entry
    if isinstance(entry, str):
        return RequestSpec(url=entry)
    if isinstance(entry, Sequence) and 3 <= len(entry) <= 4:
        url, referer, body = (value or "" for value in entry[:3])
        capture = bool(entry[3]) if len(entry) == 4 else False
        if not all(isinstance(value, str) for value in (url, referer, body)):
            raise ArgumentError(f"URL, referer and body must be strings, got {entry!r}")
        return RequestSpec(url=url, referer=referer, body=body, capture_headers=capture)
    raise ArgumentError(
        f"Entry must be a URL or a (url, referer, body[, capture_headers]) sequence, got {entry!r}"
    )


def prepare_base_url(base_url: str) -> str:
    """Validate a non-empty base URL and make sure it ends with ``/``.

    An empty base URL is returned unchanged.
    """
    if not base_url:
        return ""
    validate_url(base_url)
    return base_url if base_url.endswith("/") else base_url + "/"


def with_base_url(spec: RequestSpec, base_url: str) -> RequestSpec:
    """Return *spec* with *base_url* prefixed to its URL and any non-empty referer."""
    if not base_url:
        return spec
    return spec.model_copy(
        update={
            "url": base_url + spec.url,
            "referer": base_url + spec.referer if spec.referer else "",
        }
    )


def effective_spec(spec: RequestSpec) -> RequestSpec:
    """Validate *spec* for transport use and fill an empty referer with the URL.

    Raises:
        ArgumentError: If the URL or a non-empty referer is malformed.
    """
    validate_url(spec.url)
    if not spec.referer:
        return spec.model_copy(update={"referer": spec.url})
    validate_url(spec.referer)
    return spec
