"""browser モジュールのモックテスト."""

from unittest.mock import MagicMock, patch

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from serp_tracker.browser import BrowserFetcher
from serp_tracker.errors import BlockedError, FetchTimeoutError, TransientFetchError
from serp_tracker.models import Engine


def _mock_session(mock_sync_playwright, hrefs_by_selector=None, page_url="https://www.bing.com/search?q=noni"):
    """sync_playwright().start() 以下のモックを組み立てる."""
    playwright = MagicMock()
    mock_sync_playwright.return_value.start.return_value = playwright
    browser = playwright.chromium.launch.return_value
    context = browser.new_context.return_value
    page = context.new_page.return_value
    page.url = page_url
    page.content.return_value = "<html></html>"
    hrefs_by_selector = hrefs_by_selector or {}
    page.eval_on_selector_all.side_effect = lambda selector, js: hrefs_by_selector.get(selector, [])
    return playwright, browser, context, page


def _fetcher() -> BrowserFetcher:
    return BrowserFetcher(human_delay=(0.0, 0.0))


@patch("serp_tracker.browser.Stealth")
@patch("serp_tracker.browser.sync_playwright")
class TestBrowserFetcher:
    """BrowserFetcher.fetch のテスト."""

    def test_extracts_links(self, mock_sync_playwright, mock_stealth):
        _, _, _, page = _mock_session(mock_sync_playwright, {
            "li.b_algo h2 a[href]": [
                "https://example.com/noni",
                "https://www.bing.com/images/search?q=noni",
                "https://example.com/noni",
            ],
            "li.b_algo a[href]": ["https://www.healthline.com/noni"],
        })

        links = _fetcher().fetch("noni", Engine.BING)

        assert links == ["https://example.com/noni", "https://www.healthline.com/noni"]
        page.goto.assert_called_once()
        assert page.goto.call_args.kwargs["wait_until"] == "networkidle"
        assert page.goto.call_args.kwargs["timeout"] == 30000
        mock_stealth.return_value.apply_stealth_sync.assert_called_once_with(page)

    def test_randomized_context(self, mock_sync_playwright, mock_stealth):
        _, browser, _, _ = _mock_session(mock_sync_playwright, {
            "li.b_algo h2 a[href]": ["https://example.com/"],
        })

        _fetcher().fetch("noni", Engine.BING)

        kwargs = browser.new_context.call_args.kwargs
        assert 1200 <= kwargs["viewport"]["width"] <= 1600
        assert 700 <= kwargs["viewport"]["height"] <= 1000
        assert kwargs["user_agent"].startswith("Mozilla/5.0")

    def test_session_closed_on_success(self, mock_sync_playwright, mock_stealth):
        playwright, browser, context, page = _mock_session(mock_sync_playwright, {
            "li.b_algo h2 a[href]": ["https://example.com/"],
        })

        _fetcher().fetch("noni", Engine.BING)

        page.close.assert_called_once()
        context.close.assert_called_once()
        browser.close.assert_called_once()
        playwright.stop.assert_called_once()

    def test_zero_links_raises(self, mock_sync_playwright, mock_stealth):
        playwright, browser, _, _ = _mock_session(mock_sync_playwright)

        with pytest.raises(TransientFetchError):
            _fetcher().fetch("noni", Engine.BING)

        browser.close.assert_called_once()
        playwright.stop.assert_called_once()

    def test_timeout(self, mock_sync_playwright, mock_stealth):
        playwright, browser, _, page = _mock_session(mock_sync_playwright)
        page.goto.side_effect = PlaywrightTimeoutError("Timeout 30000ms exceeded")

        with pytest.raises(FetchTimeoutError):
            _fetcher().fetch("noni", Engine.GOOGLE)

        browser.close.assert_called_once()
        playwright.stop.assert_called_once()

    def test_browser_crash(self, mock_sync_playwright, mock_stealth):
        playwright = MagicMock()
        mock_sync_playwright.return_value.start.return_value = playwright
        playwright.chromium.launch.side_effect = PlaywrightError("Executable doesn't exist")

        with pytest.raises(TransientFetchError):
            _fetcher().fetch("noni", Engine.GOOGLE)

        playwright.stop.assert_called_once()

    def test_captcha_redirect(self, mock_sync_playwright, mock_stealth):
        _mock_session(mock_sync_playwright, page_url="https://www.google.com/sorry/index?continue=x")

        with pytest.raises(BlockedError):
            _fetcher().fetch("noni", Engine.GOOGLE)

    def test_teardown_failure_does_not_mask_result(self, mock_sync_playwright, mock_stealth):
        """終了処理の失敗で取得結果が失われないこと."""
        playwright, browser, _, _ = _mock_session(mock_sync_playwright, {
            "li.b_algo h2 a[href]": ["https://example.com/"],
        })
        browser.close.side_effect = PlaywrightError("Target closed")

        links = _fetcher().fetch("noni", Engine.BING)

        assert links == ["https://example.com/"]
        playwright.stop.assert_called_once()

    def test_teardown_failure_does_not_mask_error(self, mock_sync_playwright, mock_stealth):
        _, browser, _, page = _mock_session(mock_sync_playwright)
        page.goto.side_effect = PlaywrightTimeoutError("Timeout")
        browser.close.side_effect = RuntimeError("boom")

        with pytest.raises(FetchTimeoutError):
            _fetcher().fetch("noni", Engine.BING)
