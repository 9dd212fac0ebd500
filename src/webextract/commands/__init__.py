"""Built-in CLI sub-commands for webextract.

* :mod:`~webextract.commands.fetch` -- ``fetch`` (one resource) and
  ``batch`` (many resources concurrently).
* :mod:`~webextract.commands.cache` -- inspect cache keys and freshness.
* :mod:`~webextract.commands.config` -- view and modify global settings.

Single commands export a plain callback registered on the root app;
command groups export a :class:`typer.Typer` sub-application.
"""
