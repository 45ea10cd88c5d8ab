"""検索エンジンごとの抽出ルール.

各エンジンについて
  - 検索 URL の組み立て（件数パラメータ付き）
  - 自然検索結果リンクを拾うセレクタ戦略（優先順）
  - 除外するエンジン自身・非オーガニックのホスト
を定義する。戦略は1つ目で見つかっても打ち切らず、MAX_LINKS 件に届くまで
順に試す（広告・ナレッジパネル等で構造が混在し、単一セレクタでは取りこぼすため）。
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import parse_qs, quote, unquote, urljoin, urlsplit

from serp_tracker.config import MAX_LINKS, SEARCH_URL_TEMPLATES
from serp_tracker.models import Engine
from serp_tracker.normalize import link_hostname

logger = logging.getLogger(__name__)

_YAHOO_RU_PATTERN = re.compile(r"/RU=([^/]+)/R[KS]=")


@dataclass(frozen=True)
class SelectorStrategy:
    selector: str
    needs_js: bool = False  # JS 実行後の DOM でしか現れない構造


@dataclass(frozen=True)
class EngineRules:
    engine: Engine
    base_url: str
    strategies: tuple[SelectorStrategy, ...]
    excluded_hosts: tuple[str, ...] = field(default_factory=tuple)
    http_supported: bool = True  # 静的 HTML から抽出できるか

    def search_url(self, keyword: str) -> str:
        return SEARCH_URL_TEMPLATES[self.engine.value].format(keyword=quote(keyword, safe=""))

    def is_excluded(self, host: str) -> bool:
        """エンジン自身・非オーガニック（動画・地図・翻訳など）のホストか."""
        if not host:
            return True
        dotted = f".{host}"
        for pattern in self.excluded_hosts:
            # "google." のように末尾ドットのパターンは TLD 違いもまとめて除外
            if pattern.endswith("."):
                if f".{pattern}" in f"{dotted}.":
                    return True
            elif host == pattern or host.endswith(f".{pattern}"):
                return True
        return False

    def clean_link(self, href: str | None) -> str | None:
        """href を絶対 URL にし、リダイレクトを展開して、除外対象なら None."""
        if not href:
            return None
        url = unwrap_redirect(urljoin(self.base_url, href.strip()))
        if not url.startswith(("http://", "https://")):
            return None
        if self.is_excluded(link_hostname(url)):
            return None
        return url


def unwrap_redirect(url: str) -> str:
    """検索エンジンのクリック計測リダイレクトから遷移先 URL を取り出す."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    query = parse_qs(parts.query)

    # DuckDuckGo: //duckduckgo.com/l/?uddg=<encoded>
    if "uddg" in query:
        return query["uddg"][0]

    # Google: /url?q=<url>&sa=U
    if parts.path == "/url":
        for name in ("q", "url"):
            if query.get(name, [""])[0].startswith("http"):
                return query[name][0]

    # Yahoo: r.search.yahoo.com/.../RU=<encoded>/RK=2/RS=...
    m = _YAHOO_RU_PATTERN.search(parts.path)
    if m:
        return unquote(m.group(1))

    # Bing: /ck/a?...&u=a1<base64url>
    if parts.path.startswith("/ck/a") and query.get("u", [""])[0].startswith("a1"):
        encoded = query["u"][0][2:]
        try:
            return base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4)).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return url

    return url


ENGINE_RULES: dict[Engine, EngineRules] = {
    Engine.GOOGLE: EngineRules(
        engine=Engine.GOOGLE,
        base_url="https://www.google.com/",
        strategies=(
            SelectorStrategy("div.yuRUbf a[href]"),
            SelectorStrategy("div.g a[href]:has(h3)"),
            SelectorStrategy("div.g a[href]"),
            SelectorStrategy("a[href]:has(h3)"),
            SelectorStrategy("div[data-ved] a[href]", needs_js=True),
            SelectorStrategy("div[jscontroller] a[href]", needs_js=True),
        ),
        excluded_hosts=(
            "google.", "googleusercontent.com", "gstatic.com", "googleadservices.com",
            "youtube.com", "youtu.be", "blogger.com",
        ),
        # 静的 HTML は JS 必須ページか CAPTCHA になりやすい
        http_supported=False,
    ),
    Engine.BING: EngineRules(
        engine=Engine.BING,
        base_url="https://www.bing.com/",
        strategies=(
            SelectorStrategy("li.b_algo h2 a[href]"),
            SelectorStrategy(".b_title a[href]"),
            SelectorStrategy("li.b_algo a[href]"),
            SelectorStrategy("h2 a[href]"),
        ),
        excluded_hosts=("bing.com", "bing.net", "microsoft.com", "msn.com", "live.com"),
    ),
    Engine.YAHOO: EngineRules(
        engine=Engine.YAHOO,
        base_url="https://search.yahoo.com/",
        strategies=(
            SelectorStrategy("div.algo h3 a[href]"),
            SelectorStrategy(".algo-sr a[href]"),
            SelectorStrategy("h3 a[href]"),
            SelectorStrategy(".Sr a[href]"),
            SelectorStrategy("[data-reactid] a[href]", needs_js=True),
        ),
        excluded_hosts=("yahoo.", "yimg.com", "bing.com"),
    ),
    Engine.DUCKDUCKGO: EngineRules(
        engine=Engine.DUCKDUCKGO,
        base_url="https://html.duckduckgo.com/",
        strategies=(
            SelectorStrategy("a.result__a[href]"),
            SelectorStrategy(".result__title a[href]"),
            SelectorStrategy("a.result__url[href]"),
            SelectorStrategy('a[href*="uddg="]'),
        ),
        excluded_hosts=("duckduckgo.com",),
    ),
}

# 非ブラウザ取得で最も安定するエンジン
RELIABLE_ENGINE = Engine.DUCKDUCKGO


def get_rules(engine: Engine | str) -> EngineRules:
    return ENGINE_RULES[Engine.parse(engine)]


def search_url(engine: Engine | str, keyword: str) -> str:
    return get_rules(engine).search_url(keyword)


def collect_links(
    rules: EngineRules,
    query: Callable[[str], list[str | None]],
    static_only: bool = False,
    limit: int = MAX_LINKS,
) -> list[str]:
    """セレクタ戦略を順に適用して自然検索結果リンクを集める.

    Args:
        rules: 対象エンジンのルール
        query: セレクタを受け取り、該当要素の href リストを返す関数
        static_only: True なら JS 必須の戦略を飛ばす（静的 HTML 用）
        limit: 収集上限

    Returns:
        重複除去済み・順位順のリンク（最大 limit 件）
    """
    links: list[str] = []
    seen: set[str] = set()

    # 後段の戦略で拾ったリンクは、ページ上の位置に関係なく前段の戦略のリンクの後ろに並ぶ
    for strategy in rules.strategies:
        if static_only and strategy.needs_js:
            continue

        added = 0
        for href in query(strategy.selector):
            url = rules.clean_link(href)
            if url and url not in seen:
                seen.add(url)
                links.append(url)
                added += 1

        logger.debug(
            "セレクタ %s: %d 件追加 (engine=%s)", strategy.selector, added, rules.engine.value,
        )
        if len(links) >= limit:
            break

    return links[:limit]
