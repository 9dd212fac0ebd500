"""Canonical Pydantic models shared across all webextract modules.

This is the single source of truth for data shapes in the project. The models
fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`SessionConfig`, :class:`OutputConfig`, and :class:`GlobalConfig`.

**Request / result models** -- produced and consumed by the fetch engine:
    :class:`RequestSpec`, :class:`FetchResult`, and :class:`CachedResult`.

A cache hit and a network fetch deliberately produce different shapes: a
:class:`CachedResult` only carries the body, since nothing but the raw
payload is ever persisted.  Callers must check which one they received.
"""

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (compatible; WebResourceExtractorBot/1.0; +https://webresourceextractor.com)"
)


# --- Configuration ---


class SessionConfig(BaseModel):
    """Settings shared by every request made through one :class:`~webextract.client.Extractor`.

    Instances are plain data; use :func:`~webextract.config.build_session_config`
    to construct a validated one.  ``cache_directory`` and ``cache_age`` are
    only meaningful (and then required) when ``cache`` is enabled.

    Example::

        SessionConfig(cache=True, cache_directory="/var/cache/web", cache_age=3600)
    """

    cache: bool = Field(default=False, description="Serve fresh cache entries instead of re-fetching")
    cache_directory: Optional[str] = Field(
        default=None, description="Directory holding one file per cache key"
    )
    cache_age: int = Field(default=0, description="Cache TTL in seconds")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent header value")
    follow_redirects: bool = Field(default=False, description="Follow HTTP redirects")
    max_redirects: int = Field(
        default=0, description="Redirect limit: -1 unlimited, 0 disabled, >=1 bounded"
    )
    timeout: float = Field(default=30.0, description="Per-exchange transport timeout in seconds")
    wait_timeout: float = Field(
        default=1.0, description="Upper bound on one multiplexer wait step in seconds"
    )


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(default="auto", description="Output format: auto, json, plain, rich")


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/webextract/config.json``.

    Loaded and saved by :func:`~webextract.config.load_global_config` and
    :func:`~webextract.config.save_global_config`.  Values here have the
    lowest precedence; see :func:`~webextract.config.resolve_session_config`.
    """

    session: SessionConfig = Field(default_factory=SessionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Requests ---


class RequestSpec(BaseModel):
    """One resource to fetch.

    An empty ``referer`` means "use the URL itself".  A non-empty ``body``
    turns the exchange into a POST carrying that body.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    referer: str = ""
    body: str = ""
    capture_headers: bool = True


# --- Results ---


class FetchResult(BaseModel):
    """Outcome of one HTTP exchange.

    ``body`` is always decompressed.  ``error`` is the transport's diagnostic
    text and is empty when the exchange itself succeeded, whatever the
    status code.
    """

    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""
    elapsed: float = 0.0
    error: str = ""

    @property
    def text(self) -> str:
        """The body decoded as UTF-8, with undecodable bytes replaced."""
        return self.body.decode("utf-8", errors="replace")


class CachedResult(BaseModel):
    """A fresh cache hit: the decompressed body and nothing else."""

    body: bytes

    @property
    def text(self) -> str:
        """The body decoded as UTF-8, with undecodable bytes replaced."""
        return self.body.decode("utf-8", errors="replace")


ExtractResult = Union[FetchResult, CachedResult]
