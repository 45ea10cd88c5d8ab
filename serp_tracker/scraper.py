"""HTTP + HTML パースによる検索結果取得（軽量フェッチャ）.

ブラウザ取得が失敗した時のフォールバック、またはブラウザを使えない環境での
唯一の取得経路。静的 HTML に対して JS 不要のセレクタ戦略だけを適用する。

HTTP 呼び出し自体が成功してリンクが 0 件なら空リストを返す
（「エンジンが何も返さなかった」と「呼び出しに失敗した」を区別する）。
"""

from __future__ import annotations

import logging
import random

import requests
from bs4 import BeautifulSoup

from serp_tracker.config import (
    ALLOW_ENGINE_SUBSTITUTION,
    DEFAULT_HEADERS,
    MAX_LINKS,
    REQUEST_TIMEOUT,
    USER_AGENTS,
)
from serp_tracker.engines import RELIABLE_ENGINE, EngineRules, collect_links, get_rules
from serp_tracker.errors import (
    BlockedError,
    FetchTimeoutError,
    TransientFetchError,
    UnsupportedEngineError,
)
from serp_tracker.models import Engine

logger = logging.getLogger(__name__)

# CAPTCHA・異常トラフィック検知ページの目印
_BLOCK_MARKERS = (
    "unusual traffic",
    "/sorry/index",
    "g-recaptcha",
    "captcha-form",
    "anomaly-modal",
    "please verify you are a human",
)
_BLOCK_STATUS_CODES = (403, 429, 503)


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def build_headers(rules: EngineRules) -> dict[str, str]:
    """ブラウザらしいリクエストヘッダを組み立てる."""
    return {
        **DEFAULT_HEADERS,
        "User-Agent": random_user_agent(),
        "Referer": rules.base_url,
        "DNT": "1",
    }


def fetch_search_page(url: str, rules: EngineRules, timeout: float = REQUEST_TIMEOUT) -> str:
    """検索ページの HTML を取得する.

    Raises:
        FetchTimeoutError: タイムアウト
        BlockedError: 403/429/503 や CAPTCHA ページへのリダイレクト
        TransientFetchError: その他の通信エラー
    """
    try:
        resp = requests.get(url, headers=build_headers(rules), timeout=timeout)
    except requests.Timeout as e:
        raise FetchTimeoutError(f"Timed out fetching {url}", str(e)) from e
    except requests.RequestException as e:
        raise TransientFetchError(f"Failed to fetch {url}", str(e)) from e

    if resp.status_code in _BLOCK_STATUS_CODES or "/sorry/" in (resp.url or ""):
        raise BlockedError(f"{rules.engine.value} refused the request (HTTP {resp.status_code})")

    try:
        resp.raise_for_status()
    except requests.HTTPError as e:
        raise TransientFetchError(f"Failed to fetch {url}", str(e)) from e
    return resp.text


def looks_blocked(html: str) -> bool:
    lowered = html.lower()
    return any(marker in lowered for marker in _BLOCK_MARKERS)


def parse_search_results(html: str, rules: EngineRules, limit: int = MAX_LINKS) -> list[str]:
    """静的 HTML から自然検索結果リンクを抽出する."""
    soup = BeautifulSoup(html, "html.parser")

    def query(selector: str) -> list[str | None]:
        return [a.get("href") for a in soup.select(selector)]

    return collect_links(rules, query, static_only=True, limit=limit)


class HttpFetcher:
    """requests + BeautifulSoup による取得."""

    source = "http"

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT,
        limit: int = MAX_LINKS,
        allow_substitution: bool = ALLOW_ENGINE_SUBSTITUTION,
    ):
        self.timeout = timeout
        self.limit = limit
        self.allow_substitution = allow_substitution

    def served_engine(self, engine: Engine | str) -> Engine:
        """要求エンジンに対し、実際に HTML を取得するエンジンを決める.

        静的取得に対応しないエンジンは、許可されていれば RELIABLE_ENGINE で代替する。
        """
        engine = Engine.parse(engine)
        if get_rules(engine).http_supported:
            return engine
        if not self.allow_substitution:
            raise UnsupportedEngineError(
                f"{engine.value} cannot be fetched without a browser in this environment"
            )
        return RELIABLE_ENGINE

    def fetch(self, keyword: str, engine: Engine | str) -> list[str]:
        requested = Engine.parse(engine)
        served = self.served_engine(requested)
        if served != requested:
            logger.warning(
                "%s は静的取得に非対応のため %s で代替します", requested.value, served.value,
            )

        rules = get_rules(served)
        url = rules.search_url(keyword)
        logger.info("HTTP 取得: %s", url)
        html = fetch_search_page(url, rules, self.timeout)

        links = parse_search_results(html, rules, self.limit)
        if not links:
            if looks_blocked(html):
                raise BlockedError(f"{served.value} returned a captcha/anomaly page")
            logger.warning("検索結果のリンクが 0 件でした: engine=%s, keyword=%s", served.value, keyword)
        else:
            logger.info("HTTP 取得: %d 件のリンクを抽出 (engine=%s)", len(links), served.value)
        return links
