"""webextract -- Fetch and cache remote Web resources, one at a time or in bulk.

A session (:class:`~webextract.client.Extractor`) fetches HTTP resources on
behalf of a caller, optionally answering from a time-bounded disk cache
instead of re-fetching.  Batches of URLs are fetched concurrently under a
fixed concurrency ceiling and merged into a single URL-keyed result table.

Typical usage::

    from webextract import Extractor, build_session_config

    config = build_session_config(cache=True, cache_directory="/tmp/web", cache_age=3600)
    with Extractor(config) as extractor:
        page = extractor.fetch("https://en.wikipedia.org/wiki/Main_Page")
        pages = extractor.fetch_all(
            ["wiki/Wikipedia:About", "wiki/404"],
            base_url="https://en.wikipedia.org",
            max_concurrency=15,
        )

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and session option resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"

from webextract.client import Extractor  # noqa: E402
from webextract.config import build_session_config  # noqa: E402

__all__ = ["Extractor", "build_session_config", "__version__"]
