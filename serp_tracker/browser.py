"""Playwright によるブラウザ自動操作フェッチャ.

1回の取得ごとに独立したブラウザを起動し、終了時は成否にかかわらず必ず破棄する。
検知回避として、ビューポート・User-Agent のランダム化、playwright-stealth の適用、
抽出前の人間らしい待機（2〜5 秒）を行う。
"""

from __future__ import annotations

import logging
import random

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright
from playwright_stealth import Stealth

from serp_tracker.config import (
    BROWSER_HEADLESS,
    BROWSER_NAV_TIMEOUT_MS,
    HUMAN_DELAY_MAX,
    HUMAN_DELAY_MIN,
    MAX_LINKS,
)
from serp_tracker.engines import collect_links, get_rules
from serp_tracker.errors import BlockedError, FetchTimeoutError, TransientFetchError
from serp_tracker.models import Engine
from serp_tracker.scraper import looks_blocked, random_user_agent

logger = logging.getLogger(__name__)

_LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--no-first-run",
    "--disable-gpu",
]

_EXTRA_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Cache-Control": "max-age=0",
}

# ページ内で実行: 要素の絶対 href を返す
_HREFS_JS = "els => els.map(e => e.href)"


def random_viewport() -> dict[str, int]:
    return {"width": random.randint(1200, 1600), "height": random.randint(700, 1000)}


class BrowserFetcher:
    """ヘッドレス Chromium による取得."""

    source = "browser"

    def __init__(
        self,
        headless: bool = BROWSER_HEADLESS,
        nav_timeout_ms: int = BROWSER_NAV_TIMEOUT_MS,
        human_delay: tuple[float, float] = (HUMAN_DELAY_MIN, HUMAN_DELAY_MAX),
        limit: int = MAX_LINKS,
    ):
        self.headless = headless
        self.nav_timeout_ms = nav_timeout_ms
        self.human_delay = human_delay
        self.limit = limit

    def served_engine(self, engine: Engine | str) -> Engine:
        return Engine.parse(engine)

    def fetch(self, keyword: str, engine: Engine | str) -> list[str]:
        """検索ページを開いて自然検索結果リンクを抽出する.

        Raises:
            FetchTimeoutError: ナビゲーションのタイムアウト
            BlockedError: CAPTCHA・異常トラフィック検知ページ
            TransientFetchError: 0 件抽出・ブラウザエラー
        """
        engine = Engine.parse(engine)
        rules = get_rules(engine)
        url = rules.search_url(keyword)

        playwright = browser = context = page = None
        try:
            playwright = sync_playwright().start()
            browser = playwright.chromium.launch(headless=self.headless, args=_LAUNCH_ARGS)
            context = browser.new_context(
                viewport=random_viewport(),
                user_agent=random_user_agent(),
                locale="en-US",
                extra_http_headers=_EXTRA_HEADERS,
            )
            page = context.new_page()
            Stealth().apply_stealth_sync(page)

            logger.info("ブラウザ取得: %s", url)
            page.goto(url, wait_until="networkidle", timeout=self.nav_timeout_ms)

            delay = random.uniform(*self.human_delay)
            page.wait_for_timeout(delay * 1000)

            if "/sorry/" in page.url:
                raise BlockedError(f"{engine.value} redirected to a captcha page")

            links = collect_links(
                rules,
                lambda selector: page.eval_on_selector_all(selector, _HREFS_JS),
                limit=self.limit,
            )
            if not links:
                if looks_blocked(page.content()):
                    raise BlockedError(f"{engine.value} returned a captcha/anomaly page")
                raise TransientFetchError(f"No result links extracted from {engine.value}")

            logger.info("ブラウザ取得: %d 件のリンクを抽出 (engine=%s)", len(links), engine.value)
            return links

        except PlaywrightTimeoutError as e:
            raise FetchTimeoutError(f"Browser navigation timed out: {url}", str(e)) from e
        except PlaywrightError as e:
            raise TransientFetchError(f"Browser error while fetching {url}", str(e)) from e
        finally:
            _teardown(page, context, browser, playwright)


def _teardown(page, context, browser, playwright) -> None:
    """ブラウザ資源を破棄する。失敗はログのみで、元の結果・例外を隠さない."""
    for name, resource, method in (
        ("page", page, "close"),
        ("context", context, "close"),
        ("browser", browser, "close"),
        ("playwright", playwright, "stop"),
    ):
        if resource is None:
            continue
        try:
            getattr(resource, method)()
        except Exception as e:
            logger.warning("ブラウザ終了処理に失敗 (%s): %s", name, e)
