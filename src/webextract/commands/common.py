"""Helpers shared by the CLI commands."""

from __future__ import annotations

from typing import Any

import typer

from webextract.client import Extractor
from webextract.config import resolve_session_config
from webextract.models import CachedResult, ExtractResult


def open_extractor(ctx: typer.Context) -> Extractor:
    """Build an :class:`Extractor` from the session flags stored by the root callback."""
    options = (ctx.obj or {}).get("session", {})
    return Extractor(resolve_session_config(options))


def result_record(url: str, result: ExtractResult, include_body: bool = False) -> dict[str, Any]:
    """Flatten *result* into a JSON-friendly dict."""
    if isinstance(result, CachedResult):
        record: dict[str, Any] = {"url": url, "source": "cache", "bytes": len(result.body)}
    else:
        record = {
            "url": url,
            "source": "network",
            "status_code": result.status_code,
            "bytes": len(result.body),
            "elapsed": round(result.elapsed, 3),
            "error": result.error,
            "headers": result.headers,
        }
    if include_body:
        record["body"] = result.text
    return record


def result_row(url: str, result: ExtractResult) -> list[str]:
    """One table row: URL, source, status, bytes, elapsed, error."""
    if isinstance(result, CachedResult):
        return [url, "cache", "-", str(len(result.body)), "-", ""]
    return [
        url,
        "network",
        str(result.status_code),
        str(len(result.body)),
        f"{result.elapsed:.3f}",
        result.error,
    ]
