"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for webextract:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.webextract/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Global config** -- A single :class:`~webextract.models.GlobalConfig`
  JSON file storing session defaults and the preferred output format.
* **Session validation** -- :func:`build_session_config` turns loose
  keyword options into a checked :class:`~webextract.models.SessionConfig`.
* **Precedence resolution** -- :func:`resolve_session_config` merges CLI
  flags, environment variables, and the global config file into the
  effective session settings.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from webextract.exceptions import ArgumentError, ConfigurationError
from webextract.models import GlobalConfig, SessionConfig

_APP_NAME = "webextract"
_CONFIG_FILENAME = "config.json"
_ENV_PREFIX = "WEBEXTRACT_"

UNLIMITED_REDIRECTS = -1


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/webextract/`` (default ``~/.config/webextract/``).
    On macOS/Windows: ``~/.webextract/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the default Web resource cache directory, creating it if necessary.

    Used by the CLI when caching is requested without an explicit directory.

    On Linux/BSD: ``$XDG_CACHE_HOME/webextract/`` (default ``~/.cache/webextract/``).
    On macOS/Windows: ``~/.webextract/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/webextract/`` (default ``~/.local/share/webextract/``).
    On macOS/Windows: ``~/.webextract/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems.  On any failure the
    temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~webextract.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigurationError: If the file exists but contains invalid JSON or
            fails Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Session validation ---


def check_max_redirects(max_redirects: int) -> int:
    """Return *max_redirects* unchanged, or raise if it is below ``-1``.

    Raises:
        ArgumentError: If the count is less than ``-1``.
    """
    if max_redirects < UNLIMITED_REDIRECTS:
        raise ArgumentError(
            f'Argument must be greater than or equal to "-1", "{max_redirects}" given.'
        )
    return max_redirects


def validate_session_config(config: SessionConfig) -> SessionConfig:
    """Check the cache/redirect combination of *config* and return a normalised copy.

    The cache directory is trimmed, and ``follow_redirects`` is derived from
    ``max_redirects`` (any non-zero count enables following).

    Raises:
        ConfigurationError: If caching is enabled without a directory or with
            a non-positive ``cache_age``.
        ArgumentError: If ``max_redirects`` is below ``-1``.
    """
    check_max_redirects(config.max_redirects)
    directory = (config.cache_directory or "").strip()

    if config.cache:
        if not directory:
            raise ConfigurationError("Caching enabled but the cache directory is not provided.")
        if config.cache_age <= 0:
            raise ConfigurationError(
                "Caching enabled but the cache age is less than or equal to zero. "
                "The cache age must be greater than zero."
            )

    return config.model_copy(
        update={
            "cache_directory": directory or None,
            "user_agent": config.user_agent.strip(),
            "follow_redirects": config.max_redirects != 0,
        }
    )


def build_session_config(**options: Any) -> SessionConfig:
    """Build a validated :class:`~webextract.models.SessionConfig` from keyword options.

    ``follow_redirects=True`` without an explicit ``max_redirects`` means
    "follow without limit".

    Example::

        build_session_config(cache=True, cache_directory="/tmp/web", cache_age=600)

    Raises:
        ConfigurationError: For unknown or mistyped options, or an invalid
            cache combination.
        ArgumentError: If ``max_redirects`` is below ``-1``.
    """
    if options.get("follow_redirects") and "max_redirects" not in options:
        options["max_redirects"] = UNLIMITED_REDIRECTS
    unknown = set(options) - set(SessionConfig.model_fields)
    if unknown:
        raise ConfigurationError(f"Unknown session option(s): {', '.join(sorted(unknown))}")
    try:
        config = SessionConfig(**options)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid session options: {exc}") from exc
    return validate_session_config(config)


# --- Precedence resolution ---


def _env_int(name: str) -> Optional[int]:
    """Read an integer environment variable, or ``None`` when unset."""
    raw = os.environ.get(f"{_ENV_PREFIX}{name}", "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{_ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc


def _env_overrides() -> dict[str, Any]:
    """Collect session overrides from ``WEBEXTRACT_*`` environment variables."""
    overrides: dict[str, Any] = {}

    cache_dir = os.environ.get(f"{_ENV_PREFIX}CACHE_DIR", "").strip()
    if cache_dir:
        overrides["cache"] = True
        overrides["cache_directory"] = cache_dir

    cache_age = _env_int("CACHE_AGE")
    if cache_age is not None:
        overrides["cache_age"] = cache_age

    user_agent = os.environ.get(f"{_ENV_PREFIX}USER_AGENT", "").strip()
    if user_agent:
        overrides["user_agent"] = user_agent

    max_redirects = _env_int("MAX_REDIRECTS")
    if max_redirects is not None:
        overrides["max_redirects"] = max_redirects

    if os.environ.get(f"{_ENV_PREFIX}NO_CACHE", "").strip().lower() in ("1", "true", "yes"):
        overrides["cache"] = False

    return overrides


def resolve_session_config(cli_options: Optional[dict[str, Any]] = None) -> SessionConfig:
    """Resolve session settings with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_options``; ``None`` values are ignored)
        2. Environment variables (``WEBEXTRACT_CACHE_DIR``, ``WEBEXTRACT_CACHE_AGE``,
           ``WEBEXTRACT_USER_AGENT``, ``WEBEXTRACT_MAX_REDIRECTS``,
           ``WEBEXTRACT_NO_CACHE``)
        3. User config (``~/.config/webextract/config.json``)
        4. Defaults

    A cache directory supplied by a higher layer switches caching on.  When
    caching ends up enabled without any directory, :func:`get_cache_dir` is
    used.

    Returns:
        A validated :class:`~webextract.models.SessionConfig`.
    """
    merged = load_global_config().session.model_dump()
    merged.update(_env_overrides())

    for key, value in (cli_options or {}).items():
        if value is None:
            continue
        if key == "cache_directory":
            merged["cache"] = True
        merged[key] = value

    if merged.get("cache") and not (merged.get("cache_directory") or "").strip():
        merged["cache_directory"] = str(get_cache_dir())

    return build_session_config(**merged)
