"""Config commands -- inspect and edit the persistent session defaults.

``webextract config`` reads and writes the user's
:class:`~webextract.models.GlobalConfig`.  Its ``session`` section is the
lowest-precedence layer of :func:`~webextract.config.resolve_session_config`,
so a cache directory and TTL set here apply to every later command.
"""

from __future__ import annotations

from typing import Any

import typer

from webextract.exit_codes import EXIT_INVALID_USAGE
from webextract.output import error, get_output, info, success

config_app = typer.Typer(no_args_is_help=True)

_TRUTHY = ("true", "1", "yes", "on")


def _parent_of(data: dict[str, Any], dotted: str) -> tuple[dict[str, Any], str]:
    """Walk *dotted* through nested sections and return ``(section, leaf_name)``."""
    *sections, leaf = dotted.split(".")
    node = data
    for name in sections:
        child = node.get(name)
        if not isinstance(child, dict):
            error(f"No config section named {name!r} in {dotted!r}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        node = child
    if leaf not in node:
        error(f"Unknown config key: {dotted}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    return node, leaf


def _coerce(raw: str, current: Any, dotted: str) -> Any:
    """Convert *raw* to the type of the value it replaces."""
    if isinstance(current, bool):
        return raw.strip().lower() in _TRUTHY
    if isinstance(current, (int, float)):
        try:
            return type(current)(raw)
        except ValueError:
            error(f"{dotted} expects {type(current).__name__}, got {raw!r}")
            raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    return raw


@config_app.command("show")
def config_show() -> None:
    """Print the stored configuration as JSON.

    Example::

        webextract config show
    """
    from webextract.config import get_config_dir, load_global_config

    info(f"Config directory: {get_config_dir()}")
    get_output().print_json(load_global_config().model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Dotted key, e.g. 'session.cache_age'."),
    value: str = typer.Argument(help="New value; converted to the key's current type."),
) -> None:
    """Change one stored setting.

    Example::

        webextract config set session.cache true
        webextract config set session.cache_directory ~/.cache/web
        webextract config set session.cache_age 3600
        webextract config set session.max_redirects -1
    """
    from webextract.config import load_global_config, save_global_config
    from webextract.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")
    section, leaf = _parent_of(data, key)
    section[leaf] = _coerce(value, section[leaf], key)

    try:
        updated = GlobalConfig.model_validate(data)
    except ValueError as exc:
        error(f"Rejected {key}={value!r}: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_global_config(updated)
    success(f"{key} = {section[leaf]!r}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask for confirmation."),
) -> None:
    """Restore every setting to its default."""
    from webextract.config import save_global_config
    from webextract.models import GlobalConfig

    if not force and not typer.confirm("Discard all stored settings?"):
        info("Nothing changed.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration restored to defaults.")
