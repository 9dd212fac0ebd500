"""Exception hierarchy for webextract.

All exceptions inherit from :class:`WebExtractError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`webextract.exit_codes`.
The top-level error handler in :func:`webextract.app.main` catches
``WebExtractError`` and exits with the appropriate code.

Subclass hierarchy::

    WebExtractError (exit 1)
    +-- ConfigurationError  (exit 1)
    +-- ArgumentError       (exit 2)
    +-- TransportError      (exit 6)
    +-- StorageError        (exit 8)

Per-request transport failures inside a batch are *not* raised; they are
recorded on the failing URL's :class:`~webextract.models.FetchResult`.
"""

from webextract.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_STORAGE_ERROR,
    EXIT_TRANSPORT_ERROR,
)


class WebExtractError(Exception):
    """Base exception for all webextract errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(WebExtractError):
    """Raised for invalid session configuration (caching without a directory or a positive TTL)."""

    exit_code = EXIT_GENERIC_FAILURE


class ArgumentError(WebExtractError):
    """Raised for malformed URLs, bad redirect counts, or batches with too few entries."""

    exit_code = EXIT_INVALID_USAGE


class TransportError(WebExtractError):
    """Raised when a single-fetch HTTP exchange fails.

    The message carries the transport's own diagnostic text.
    """

    exit_code = EXIT_TRANSPORT_ERROR


class StorageError(WebExtractError):
    """Raised when a cache entry or the cookie jar is unreadable or unwritable."""

    exit_code = EXIT_STORAGE_ERROR
