"""Fetch commands -- extract one resource, or many concurrently.

``webextract fetch`` writes the body of a single resource to stdout (or
``--output``), with the status line and captured headers on stderr.
``webextract batch`` fetches a list of URLs under a concurrency ceiling
and prints one row per URL.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from webextract.commands.common import open_extractor, result_record, result_row
from webextract.models import CachedResult
from webextract.output import OutputFormat, get_output, info

_BATCH_COLUMNS = ["URL", "Source", "Status", "Bytes", "Elapsed", "Error"]


def fetch_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Absolute URL to fetch."),
    referer: str = typer.Option("", "--referer", "-r", help="Referer (defaults to the URL)."),
    data: str = typer.Option("", "--data", "-d", help="POST body; switches the request to POST."),
    headers: bool = typer.Option(
        True, "--headers/--no-headers", help="Capture and show response headers."
    ),
    bypass_cache: bool = typer.Option(
        False, "--bypass-cache", help="Neither read nor write the cache for this request."
    ),
) -> None:
    """Fetch a single Web resource.

    Example::

        webextract fetch https://en.wikipedia.org/wiki/Main_Page
        webextract --json fetch https://example.com/form -d "q=1"
    """
    output = get_output()
    with open_extractor(ctx) as extractor:
        result = extractor.fetch(
            url, referer=referer, body=data, capture_headers=headers, bypass_cache=bypass_cache
        )

    if output.format == OutputFormat.JSON:
        output.print_json(result_record(url, result, include_body=True))
        return

    if isinstance(result, CachedResult):
        info("Served from cache")
    else:
        info(f"HTTP {result.status_code} in {result.elapsed:.3f}s")
        for name, value in result.headers.items():
            info(f"{name}: {value}")
    output.print_body(result.body)


def batch_command(
    ctx: typer.Context,
    urls: Optional[list[str]] = typer.Argument(None, help="URLs (relative when --base-url is set)."),
    base_url: str = typer.Option("", "--base-url", "-b", help="Prefix for every URL and referer."),
    max_concurrency: int = typer.Option(
        10, "--max-concurrency", "-c", min=1, help="Maximum simultaneous requests."
    ),
    from_file: Optional[Path] = typer.Option(
        None, "--from-file", "-f", help="Read additional URLs from a file, one per line."
    ),
    bodies: bool = typer.Option(False, "--bodies", help="Include bodies in JSON output."),
) -> None:
    """Fetch many Web resources concurrently.

    Example::

        webextract batch wiki/Wikipedia:About wiki/404 -b https://en.wikipedia.org -c 15
    """
    entries = list(urls or [])
    if from_file is not None:
        lines = from_file.read_text(encoding="utf-8").splitlines()
        entries.extend(line.strip() for line in lines if line.strip())

    output = get_output()
    with open_extractor(ctx) as extractor:
        results = extractor.fetch_all(entries, base_url=base_url, max_concurrency=max_concurrency)

    if output.format == OutputFormat.JSON:
        output.print_json([result_record(u, r, include_body=bodies) for u, r in results.items()])
        return

    output.print_table(
        _BATCH_COLUMNS,
        [result_row(u, r) for u, r in results.items()],
        title=f"{len(results)} resource(s)",
    )
