"""Tests for the Extractor session facade (single fetches and session settings)."""

from __future__ import annotations

import gzip
from pathlib import Path

import httpx
import pytest
from http_doubles import streamed

from webextract.cache import CacheStore
from webextract.client import Extractor
from webextract.config import build_session_config
from webextract.exceptions import ArgumentError, ConfigurationError, StorageError, TransportError
from webextract.models import CachedResult, FetchResult, RequestSpec


class Recorder:
    """A MockTransport handler that records requests and answers from a table."""

    def __init__(self, routes: dict[str, httpx.Response] | None = None) -> None:
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path in self.routes:
            return self.routes[request.url.path]
        return streamed(200, b"hello", {"X-Test": "1"})


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture()
def cached_config(tmp_path: Path):
    return build_session_config(cache=True, cache_directory=str(tmp_path / "web"), cache_age=600)


# ------------------------------------------------------------------ #
# Construction
# ------------------------------------------------------------------ #


class TestConstruction:
    def test_defaults(self) -> None:
        with Extractor() as ex:
            assert ex.config.cache is False
            assert ex.config.follow_redirects is False
            assert ex.cache.enabled is False

    def test_cache_without_directory(self) -> None:
        with pytest.raises(ConfigurationError, match="cache directory is not provided"):
            build_session_config(cache=True, cache_age=10)

    def test_cache_with_zero_age(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="cache age"):
            build_session_config(cache=True, cache_directory=str(tmp_path), cache_age=0)

    def test_cache_directory_is_trimmed_and_created(self, tmp_path: Path) -> None:
        config = build_session_config(
            cache=True, cache_directory=f"  {tmp_path / 'web'}  ", cache_age=5
        )
        with Extractor(config) as ex:
            assert ex.cache.directory == tmp_path / "web"
            assert (tmp_path / "web").is_dir()


# ------------------------------------------------------------------ #
# Single fetch
# ------------------------------------------------------------------ #


class TestFetch:
    def test_plain_get(self, recorder: Recorder) -> None:
        with Extractor(transport=httpx.MockTransport(recorder)) as ex:
            result = ex.fetch("http://example.test/")
        assert isinstance(result, FetchResult)
        assert result.status_code == 200
        assert result.body == b"hello"
        assert result.text == "hello"
        assert result.error == ""
        assert result.headers["x-test"] == "1"
        assert result.elapsed >= 0

    def test_request_headers(self, recorder: Recorder) -> None:
        config = build_session_config(user_agent="webextract-test/2.0")
        with Extractor(config, transport=httpx.MockTransport(recorder)) as ex:
            ex.fetch("http://example.test/page")
        request = recorder.requests[0]
        assert request.method == "GET"
        assert request.headers["referer"] == "http://example.test/page"
        assert request.headers["user-agent"] == "webextract-test/2.0"
        assert request.headers["accept-encoding"] == "gzip"
        assert request.headers["cache-control"] == "no-cache"

    def test_post_body(self, recorder: Recorder) -> None:
        with Extractor(transport=httpx.MockTransport(recorder)) as ex:
            ex.fetch("http://example.test/form", referer="http://example.test/", body="q=1")
        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.content == b"q=1"
        assert request.headers["referer"] == "http://example.test/"

    def test_headers_not_captured(self, recorder: Recorder) -> None:
        with Extractor(transport=httpx.MockTransport(recorder)) as ex:
            result = ex.fetch("http://example.test/", capture_headers=False)
        assert result.headers == {}

    def test_gzip_body_decoded(self) -> None:
        recorder = Recorder(
            {"/": streamed(200, gzip.compress(b"zipped"), {"Content-Encoding": "gzip"})}
        )
        with Extractor(transport=httpx.MockTransport(recorder)) as ex:
            assert ex.fetch("http://example.test/").body == b"zipped"

    def test_preloaded_response(self) -> None:
        recorder = Recorder({"/eager": httpx.Response(200, content=b"eager")})
        with Extractor(transport=httpx.MockTransport(recorder)) as ex:
            result = ex.fetch("http://example.test/eager")
        assert result.status_code == 200
        assert result.body == b"eager"

    def test_non_200_is_not_an_error(self) -> None:
        recorder = Recorder({"/missing": streamed(404, b"nope")})
        with Extractor(transport=httpx.MockTransport(recorder)) as ex:
            result = ex.fetch("http://example.test/missing")
        assert result.status_code == 404
        assert result.error == ""

    def test_invalid_url(self, recorder: Recorder) -> None:
        with Extractor(transport=httpx.MockTransport(recorder)) as ex:
            with pytest.raises(ArgumentError):
                ex.fetch("wiki/Main_Page")
        assert recorder.requests == []

    def test_non_ascii_url(self, recorder: Recorder) -> None:
        with Extractor(transport=httpx.MockTransport(recorder)) as ex:
            with pytest.raises(ArgumentError, match="café"):
                ex.fetch("http://example.test/café")
        assert recorder.requests == []

    def test_non_ascii_referer(self, recorder: Recorder) -> None:
        with Extractor(transport=httpx.MockTransport(recorder)) as ex:
            with pytest.raises(ArgumentError):
                ex.fetch("http://example.test/", referer="http://example.test/résumé")
        assert recorder.requests == []

    def test_invalid_referer(self, recorder: Recorder) -> None:
        with Extractor(transport=httpx.MockTransport(recorder)) as ex:
            with pytest.raises(ArgumentError):
                ex.fetch("http://example.test/", referer="elsewhere")

    def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("name resolution failed", request=request)

        with Extractor(transport=httpx.MockTransport(handler)) as ex:
            with pytest.raises(TransportError, match="name resolution failed"):
                ex.fetch("http://example.test/")

    def test_request_spec_argument(self, recorder: Recorder) -> None:
        spec = RequestSpec(url="http://example.test/", body="a=b", capture_headers=False)
        with Extractor(transport=httpx.MockTransport(recorder)) as ex:
            result = ex.fetch(spec)
        assert recorder.requests[0].method == "POST"
        assert result.headers == {}


# ------------------------------------------------------------------ #
# Caching
# ------------------------------------------------------------------ #


class TestFetchCache:
    def test_miss_then_hit(self, recorder: Recorder, cached_config) -> None:
        with Extractor(cached_config, transport=httpx.MockTransport(recorder)) as ex:
            first = ex.fetch("http://example.test/")
            second = ex.fetch("http://example.test/")
        assert isinstance(first, FetchResult)
        assert isinstance(second, CachedResult)
        assert second.body == b"hello"
        assert len(recorder.requests) == 1

    def test_raw_gzip_payload_stored(self, cached_config) -> None:
        payload = gzip.compress(b"zipped")
        recorder = Recorder(
            {"/": streamed(200, payload, {"Content-Encoding": "gzip"})}
        )
        with Extractor(cached_config, transport=httpx.MockTransport(recorder)) as ex:
            ex.fetch("http://example.test/")
            key = CacheStore.key("http://example.test/", "")
            assert ex.cache.read(key) == payload
            assert ex.fetch("http://example.test/").body == b"zipped"

    def test_non_200_not_cached(self, cached_config) -> None:
        recorder = Recorder({"/missing": streamed(404, b"nope")})
        with Extractor(cached_config, transport=httpx.MockTransport(recorder)) as ex:
            ex.fetch("http://example.test/missing")
            assert not ex.cache.is_fresh(CacheStore.key("http://example.test/missing", ""))

    def test_empty_body_not_cached(self, cached_config) -> None:
        recorder = Recorder({"/empty": streamed(200)})
        with Extractor(cached_config, transport=httpx.MockTransport(recorder)) as ex:
            ex.fetch("http://example.test/empty")
            assert ex.cache.age(CacheStore.key("http://example.test/empty", "")) is None

    def test_body_is_part_of_key(self, recorder: Recorder, cached_config) -> None:
        with Extractor(cached_config, transport=httpx.MockTransport(recorder)) as ex:
            ex.fetch("http://example.test/", body="q=1")
            result = ex.fetch("http://example.test/", body="q=2")
        assert isinstance(result, FetchResult)
        assert len(recorder.requests) == 2

    def test_bypass_cache(self, recorder: Recorder, cached_config) -> None:
        with Extractor(cached_config, transport=httpx.MockTransport(recorder)) as ex:
            ex.fetch("http://example.test/")
            result = ex.fetch("http://example.test/", bypass_cache=True)
        assert isinstance(result, FetchResult)
        assert len(recorder.requests) == 2

    def test_fresh_entry_unreadable(self, recorder: Recorder, cached_config) -> None:
        with Extractor(cached_config, transport=httpx.MockTransport(recorder)) as ex:
            key = CacheStore.key("http://example.test/", "")
            ex.cache.write(key, b"\x1f\x8bbroken")
            with pytest.raises(StorageError):
                ex.fetch("http://example.test/")
        assert recorder.requests == []


# ------------------------------------------------------------------ #
# Redirects and session settings
# ------------------------------------------------------------------ #


def _redirect_chain(request: httpx.Request) -> httpx.Response:
    hops = {"/0": "/1", "/1": "/2", "/2": "/3"}
    path = request.url.path
    if path in hops:
        return httpx.Response(302, headers={"Location": hops[path], "X-Hop": path})
    return streamed(200, b"landed", {"X-Final": "yes"})


class TestRedirects:
    def test_not_followed_by_default(self) -> None:
        with Extractor(transport=httpx.MockTransport(_redirect_chain)) as ex:
            result = ex.fetch("http://example.test/0")
        assert result.status_code == 302

    def test_follow_location_unlimited(self) -> None:
        with Extractor(transport=httpx.MockTransport(_redirect_chain)) as ex:
            ex.follow_location()
            result = ex.fetch("http://example.test/0")
        assert result.status_code == 200
        assert result.body == b"landed"
        # Headers from every hop are replayed; later hops override earlier ones.
        assert result.headers["x-final"] == "yes"
        assert result.headers["x-hop"] == "/2"

    def test_bounded_redirects_exceeded(self) -> None:
        config = build_session_config(max_redirects=1)
        with Extractor(config, transport=httpx.MockTransport(_redirect_chain)) as ex:
            with pytest.raises(TransportError):
                ex.fetch("http://example.test/0")

    def test_follow_location_zero_disables(self) -> None:
        with Extractor(transport=httpx.MockTransport(_redirect_chain)) as ex:
            ex.follow_location(5)
            ex.follow_location(0)
            assert ex.config.follow_redirects is False
            assert ex.fetch("http://example.test/0").status_code == 302

    def test_follow_location_invalid(self) -> None:
        with Extractor() as ex:
            with pytest.raises(ArgumentError, match='"-2" given'):
                ex.follow_location(-2)

    def test_follow_redirects_flag_means_unlimited(self) -> None:
        config = build_session_config(follow_redirects=True)
        assert config.max_redirects == -1
        assert config.follow_redirects is True

    def test_set_user_agent(self, recorder: Recorder) -> None:
        with Extractor(transport=httpx.MockTransport(recorder)) as ex:
            ex.fetch("http://example.test/")
            ex.set_user_agent("  second/1.0 ")
            ex.fetch("http://example.test/")
        assert recorder.requests[1].headers["user-agent"] == "second/1.0"


# ------------------------------------------------------------------ #
# Cookies
# ------------------------------------------------------------------ #


def _cookie_server(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/login":
        return streamed(200, b"in", {"Set-Cookie": "sid=abc123; Path=/"})
    return streamed(200, request.headers.get("cookie", "").encode())


class TestCookies:
    def test_cookies_carried_between_requests(self) -> None:
        with Extractor(transport=httpx.MockTransport(_cookie_server)) as ex:
            ex.fetch("http://example.test/login")
            result = ex.fetch("http://example.test/whoami")
        assert b"sid=abc123" in result.body

    def test_ephemeral_jar_removed_on_close(self) -> None:
        ex = Extractor(transport=httpx.MockTransport(_cookie_server))
        path = ex.cookie_jar_path
        assert path.name.startswith("cookies")
        ex.fetch("http://example.test/login")
        assert path.exists()
        ex.close()
        assert not path.exists()

    def test_jar_persisted_in_cache_directory(self, cached_config) -> None:
        with Extractor(cached_config, transport=httpx.MockTransport(_cookie_server)) as ex:
            ex.fetch("http://example.test/login")
            path = ex.cookie_jar_path
        assert path == Path(cached_config.cache_directory) / "cookies.txt"
        assert "sid" in path.read_text()

        with Extractor(cached_config, transport=httpx.MockTransport(_cookie_server)) as ex:
            result = ex.fetch("http://example.test/whoami")
        assert b"sid=abc123" in result.body

    def test_unwritable_jar_after_success(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def refuse(*args, **kwargs) -> None:
            raise OSError("read-only file system")

        with Extractor(transport=httpx.MockTransport(_cookie_server)) as ex:
            monkeypatch.setattr(ex._cookies, "save", refuse)
            with pytest.raises(StorageError, match="Cannot save cookie jar"):
                ex.fetch("http://example.test/login")

    def test_transport_error_not_masked_by_jar(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        def refuse(*args, **kwargs) -> None:
            raise OSError("read-only file system")

        with Extractor(transport=httpx.MockTransport(handler)) as ex:
            monkeypatch.setattr(ex._cookies, "save", refuse)
            with pytest.raises(TransportError, match="connection refused"):
                ex.fetch("http://example.test/")
