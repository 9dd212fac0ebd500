"""HTTP fetch engine for webextract.

Classes:
    :class:`Extractor` -- session facade: single fetches on a blocking
    :class:`httpx.Client`, batches on :class:`httpx.AsyncClient`.
    :class:`BatchFetcher` -- the bounded-concurrency batch scheduler.
    :class:`Multiplexer` -- drives many exchanges on one event loop.
    :class:`HeaderCollector` -- per-request response header capture.

Example::

    from webextract.client import Extractor

    with Extractor() as extractor:
        table = extractor.fetch_all(["https://a.example/", "https://b.example/"])
"""

from webextract.client.batch import BatchFetcher
from webextract.client.extractor import Extractor
from webextract.client.headers import HeaderCollector
from webextract.client.request import normalize_entry, validate_url
from webextract.client.transport import Multiplexer

__all__ = [
    "BatchFetcher",
    "Extractor",
    "HeaderCollector",
    "Multiplexer",
    "normalize_entry",
    "validate_url",
]
