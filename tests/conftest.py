"""Shared test fixtures for webextract.

Provides isolated config environments, output-state management and a
CLI runner.  These fixtures are automatically discovered by pytest.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from webextract.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time; CliRunner swaps those streams per invocation, so a
    stale manager would write to closed files.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points the XDG variables at subdirectories of tmp_path, clears every
    WEBEXTRACT_* variable, and changes into tmp_path.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("webextract.config._is_xdg_platform", lambda: True)

    for var in [
        "WEBEXTRACT_CACHE_DIR",
        "WEBEXTRACT_CACHE_AGE",
        "WEBEXTRACT_USER_AGENT",
        "WEBEXTRACT_MAX_REDIRECTS",
        "WEBEXTRACT_NO_CACHE",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def verbose_output() -> OutputManager:
    """Install a verbose PLAIN-format output manager so debug lines are emitted."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
