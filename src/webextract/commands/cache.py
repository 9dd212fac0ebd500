"""Cache commands -- inspect cache keys and entry freshness.

Entries are never evicted by webextract; these commands only report.
"""

from __future__ import annotations

import typer

from webextract.commands.common import open_extractor
from webextract.output import OutputFormat, get_output, info

cache_app = typer.Typer(no_args_is_help=True)


@cache_app.command("key")
def cache_key(
    url: str = typer.Argument(help="Effective (absolute) URL."),
    data: str = typer.Option("", "--data", "-d", help="POST body that is part of the key."),
) -> None:
    """Print the cache key (file name) for a URL and POST body."""
    from webextract.cache import CacheStore

    get_output().print_data(CacheStore.key(url, data))


@cache_app.command("check")
def cache_check(
    ctx: typer.Context,
    url: str = typer.Argument(help="Effective (absolute) URL."),
    data: str = typer.Option("", "--data", "-d", help="POST body that is part of the key."),
) -> None:
    """Report whether a URL has a fresh cache entry.

    Exits with code 1 when the entry is missing or stale.
    """
    output = get_output()
    with open_extractor(ctx) as extractor:
        store = extractor.cache
        if not store.enabled:
            info("Caching is disabled for this session.")
            raise typer.Exit(code=1)
        key = store.key(url, data)
        age = store.age(key)
        fresh = store.is_fresh(key)
        ttl = extractor.config.cache_age
        path = str(store.path(key))

    if output.format == OutputFormat.JSON:
        output.print_json({"key": key, "path": path, "age": age, "ttl": ttl, "fresh": fresh})
    elif age is None:
        output.print_data(f"{key}\tmissing")
    else:
        output.print_data(f"{key}\t{'fresh' if fresh else 'stale'}\t{age:.0f}s/{ttl}s")

    if not fresh:
        raise typer.Exit(code=1)
