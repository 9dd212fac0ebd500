"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~webextract.exceptions.WebExtractError` subclass.
Shell wrappers can inspect the exit code to tell a bad argument from a
network failure without parsing stderr.

Example::

    $ webextract fetch not-a-url
    $ echo $?
    2   # EXIT_INVALID_USAGE -- the URL was rejected before any I/O
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred (also used for configuration errors)."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments (malformed URL, too few batch entries)."""

EXIT_TRANSPORT_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_STORAGE_ERROR = 8
"""A cache entry or the cookie jar could not be read or written."""
