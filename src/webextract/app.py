"""Typer application and CLI entry point for webextract.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``fetch``, ``batch``, ``cache``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``.  It installs signal handlers, registers commands and
invokes the Typer app.  :class:`~webextract.exceptions.WebExtractError`
exits with the error's code; anything else is written to a crash log under
the data directory.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from webextract import __version__
from webextract.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="webextract",
    help="Fetch and cache Web resources, one at a time or concurrently.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"webextract {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    output_file: Optional[str] = typer.Option(
        None, "-o", "--output", help="Write fetched bodies to this file."
    ),
    cache_dir: Optional[str] = typer.Option(
        None, "--cache-dir", help="Cache directory (enables caching)."
    ),
    cache_age: Optional[int] = typer.Option(
        None, "--cache-age", help="Cache TTL in seconds."
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Disable caching."),
    user_agent: Optional[str] = typer.Option(None, "--user-agent", help="User-Agent header."),
    max_redirects: Optional[int] = typer.Option(
        None, "--max-redirects", help="Redirects to follow: -1 unlimited, 0 none."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~webextract.output.OutputManager` from
    CLI flags and stores the session overrides in ``ctx.obj["session"]``
    for :func:`~webextract.config.resolve_session_config`.
    """
    from webextract.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(
        OutputManager(
            format=fmt,
            no_color=no_color,
            quiet=quiet,
            verbose=verbose,
            output_file=output_file,
        )
    )

    session: dict[str, Any] = {
        "cache_directory": cache_dir,
        "cache_age": cache_age,
        "user_agent": user_agent,
        "max_redirects": max_redirects,
    }
    if no_cache:
        session["cache"] = False

    ctx.ensure_object(dict)
    ctx.obj["session"] = session


def _register_commands() -> None:
    from webextract.commands.cache import cache_app
    from webextract.commands.config import config_app
    from webextract.commands.fetch import batch_command, fetch_command

    app.command("fetch")(fetch_command)
    app.command("batch")(batch_command)
    app.add_typer(cache_app, name="cache", help="Inspect the response cache.")
    app.add_typer(config_app, name="config", help="Configuration management.")


_register_commands()


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from webextract.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``webextract`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from webextract.exceptions import WebExtractError
        from webextract.output import error

        if isinstance(exc, WebExtractError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
