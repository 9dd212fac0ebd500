"""Terminal output for webextract: fetched data on stdout, diagnostics on stderr.

Follows `clig.dev <https://clig.dev/>`_ conventions:

* **stdout** carries only what a pipeline wants: response bodies (as raw
  bytes), batch result tables and JSON records.
* **stderr** carries status lines, captured headers, cache hits, warnings
  and errors.
* **Rich** rendering is used when stdout is a terminal; piped output is
  plain text.  ``NO_COLOR``, ``TERM=dumb`` and ``--no-color`` switch colour
  off.

The fetch engine never prints directly.  It reports through the
module-level helpers (:func:`debug`, :func:`warning`, ...), which forward to
the :class:`OutputManager` installed by
:func:`~webextract.app.main_callback`.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """How stdout data is rendered.

    ``AUTO`` becomes ``RICH`` on an interactive, colour-capable terminal and
    ``PLAIN`` everywhere else.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


# Diagnostic kinds: (plain-text prefix, rich markup template, quiet hides it).
_DIAGNOSTICS: dict[str, tuple[str, str, bool]] = {
    "info": ("", "{message}", True),
    "success": ("", "[green]{message}[/green]", True),
    "warning": ("Warning: ", "[yellow]Warning:[/yellow] {message}", False),
    "error": ("Error: ", "[bold red]Error:[/bold red] {message}", False),
    "debug": ("[debug] ", "[dim]\\[debug] {message}[/dim]", False),
}


class OutputManager:
    """Routes data and diagnostics to the right stream in the right format.

    Args:
        format: Rendering for stdout data; ``AUTO`` is resolved at
            construction.
        no_color: Never emit colour or markup.
        quiet: Hide informational and success messages.  Warnings and
            errors are always shown.
        verbose: Show debug messages (cache hits, admissions, completions).
        output_file: Write fetched bodies to this path instead of stdout.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
        output_file: Optional[str] = None,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._output_file = output_file

        if format == OutputFormat.AUTO:
            rich_ok = _is_tty() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=(self._format == OutputFormat.RICH),
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        """The resolved output format (never ``AUTO``)."""
        return self._format

    # ------------------------------------------------------------------ #
    # stdout
    # ------------------------------------------------------------------ #

    def print_body(self, body: bytes) -> None:
        """Emit a response body byte-for-byte, to ``output_file`` when one is set."""
        if self._output_file:
            with open(self._output_file, "wb") as f:
                f.write(body)
            return

        binary = getattr(sys.stdout, "buffer", None)
        if binary is None:
            sys.stdout.write(body.decode("utf-8", errors="replace"))
            sys.stdout.flush()
        else:
            binary.write(body)
            binary.flush()

    def print_data(self, text: str) -> None:
        """Write one line of text to stdout."""
        print(text, file=sys.stdout, flush=True)

    def print_json(self, data: Any) -> None:
        """Write *data* as indented JSON (highlighted in Rich mode)."""
        rendered = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        if self._format == OutputFormat.RICH:
            self._stdout.print(Syntax(rendered, "json", theme="monokai", word_wrap=True))
        else:
            self.print_data(rendered)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write a result table.

        JSON mode emits a list of objects keyed by column name, plain mode
        tab-separated lines with a header row, Rich mode a styled table.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(
                json.dumps([dict(zip(headers, row)) for row in rows], indent=2, ensure_ascii=False)
            )
            return

        if self._format == OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        for column in headers:
            table.add_column(column)
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # stderr
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        self._emit("info", message)

    def success(self, message: str) -> None:
        self._emit("success", message)

    def warning(self, message: str) -> None:
        self._emit("warning", message)

    def error(self, message: str) -> None:
        self._emit("error", message)

    def debug(self, message: str) -> None:
        """Emit a debug line; a no-op unless verbose."""
        if self._verbose:
            self._emit("debug", message)

    def _emit(self, kind: str, message: str) -> None:
        prefix, template, quiet_hides = _DIAGNOSTICS[kind]
        if quiet_hides and self._quiet:
            return
        if self._no_color:
            print(f"{prefix}{message}", file=sys.stderr, flush=True)
        else:
            # URLs and header values may contain square brackets.
            self._stderr.print(template.format(message=escape(message)))


# ------------------------------------------------------------------ #
# Environment checks
# ------------------------------------------------------------------ #


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (to anything) or ``TERM`` is ``dumb``."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Process-wide instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager (tests swap stdout/stderr between runs)."""
    global _output
    _output = None


def info(message: str) -> None:
    get_output().info(message)


def error(message: str) -> None:
    get_output().error(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def debug(message: str) -> None:
    get_output().debug(message)
