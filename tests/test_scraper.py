"""scraper モジュール（HTTP フェッチャ）のユニットテスト."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

from serp_tracker.config import USER_AGENTS
from serp_tracker.errors import (
    BlockedError,
    FetchTimeoutError,
    TransientFetchError,
    UnsupportedEngineError,
)
from serp_tracker.models import Engine
from serp_tracker.scraper import HttpFetcher, looks_blocked

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _load_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


def _response(text: str = "", status_code: int = 200, url: str = "https://html.duckduckgo.com/html/"):
    resp = MagicMock()
    resp.text = text
    resp.status_code = status_code
    resp.url = url
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return resp


class TestHttpFetcher:
    """HttpFetcher.fetch のテスト."""

    @patch("serp_tracker.scraper.requests.get")
    def test_fetch_duckduckgo(self, mock_get):
        mock_get.return_value = _response(_load_fixture("duckduckgo_search.html"))

        links = HttpFetcher().fetch("Noni Juice", Engine.DUCKDUCKGO)

        assert len(links) == 4
        assert links[1] == "https://shop.example.com/noni"
        url = mock_get.call_args.args[0]
        assert url == "https://html.duckduckgo.com/html/?q=Noni%20Juice"

    @patch("serp_tracker.scraper.requests.get")
    def test_browser_like_headers(self, mock_get):
        mock_get.return_value = _response(_load_fixture("bing_search.html"))

        HttpFetcher(timeout=15).fetch("noni", "bing")

        kwargs = mock_get.call_args.kwargs
        headers = kwargs["headers"]
        assert kwargs["timeout"] == 15
        assert headers["User-Agent"] in USER_AGENTS
        assert headers["DNT"] == "1"
        assert headers["Referer"] == "https://www.bing.com/"
        assert "Accept-Language" in headers

    @patch("serp_tracker.scraper.requests.get")
    def test_empty_result_is_not_error(self, mock_get):
        """HTTP 成功・0 件なら空リストを返すこと."""
        mock_get.return_value = _response("<html><body>No results.</body></html>")

        assert HttpFetcher().fetch("zzqqxx", Engine.DUCKDUCKGO) == []

    @patch("serp_tracker.scraper.requests.get")
    def test_captcha_page_is_blocked(self, mock_get):
        mock_get.return_value = _response(_load_fixture("captcha.html"))

        with pytest.raises(BlockedError):
            HttpFetcher().fetch("noni", Engine.DUCKDUCKGO)

    @pytest.mark.parametrize("status", [403, 429, 503])
    @patch("serp_tracker.scraper.requests.get")
    def test_block_status_codes(self, mock_get, status):
        mock_get.return_value = _response(status_code=status)

        with pytest.raises(BlockedError):
            HttpFetcher().fetch("noni", Engine.DUCKDUCKGO)

    @patch("serp_tracker.scraper.requests.get")
    def test_rate_limited(self, mock_get):
        mock_get.return_value = _response(status_code=429)

        with pytest.raises(BlockedError):
            HttpFetcher().fetch("noni", Engine.DUCKDUCKGO)

    @patch("serp_tracker.scraper.requests.get")
    def test_server_error(self, mock_get):
        mock_get.return_value = _response(status_code=500)

        with pytest.raises(TransientFetchError) as exc_info:
            HttpFetcher().fetch("noni", Engine.DUCKDUCKGO)
        assert not isinstance(exc_info.value, BlockedError)

    @patch("serp_tracker.scraper.requests.get")
    def test_timeout(self, mock_get):
        mock_get.side_effect = requests.Timeout("read timed out")

        with pytest.raises(FetchTimeoutError):
            HttpFetcher().fetch("noni", Engine.DUCKDUCKGO)

    @patch("serp_tracker.scraper.requests.get")
    def test_connection_error(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(TransientFetchError):
            HttpFetcher().fetch("noni", Engine.DUCKDUCKGO)


class TestEngineSubstitution:
    """静的取得に非対応なエンジンの代替."""

    def test_google_served_by_reliable_engine(self):
        assert HttpFetcher(allow_substitution=True).served_engine("google") == Engine.DUCKDUCKGO

    def test_supported_engine_is_not_substituted(self):
        assert HttpFetcher(allow_substitution=True).served_engine("yahoo") == Engine.YAHOO

    def test_substitution_disabled(self):
        with pytest.raises(UnsupportedEngineError):
            HttpFetcher(allow_substitution=False).served_engine("google")

    @patch("serp_tracker.scraper.requests.get")
    def test_google_request_hits_duckduckgo(self, mock_get):
        mock_get.return_value = _response(_load_fixture("duckduckgo_search.html"))

        links = HttpFetcher(allow_substitution=True).fetch("noni", "google")

        assert mock_get.call_args.args[0].startswith("https://html.duckduckgo.com/")
        assert len(links) == 4


class TestLooksBlocked:

    def test_captcha(self):
        assert looks_blocked(_load_fixture("captcha.html"))

    def test_normal_page(self):
        assert not looks_blocked(_load_fixture("duckduckgo_search.html"))
