"""順位トラッカー — 単一キーワード照会とバッチ実行.

バッチはキーワードを入力順に1件ずつ処理し、2件目以降の前に 1〜3 秒待機する。
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable

from serp_tracker.browser import BrowserFetcher
from serp_tracker.cache import SerpCache
from serp_tracker.config import (
    BROWSER_ENABLED,
    MAX_BATCH_KEYWORDS,
    REQUEST_INTERVAL_MAX,
    REQUEST_INTERVAL_MIN,
)
from serp_tracker.engines import search_url
from serp_tracker.errors import InvalidInputError, RankTrackerError
from serp_tracker.models import BatchRankReport, Engine, RankQuery, RankRecord
from serp_tracker.normalize import is_valid_domain, normalize_domain
from serp_tracker.ranker import resolve
from serp_tracker.scraper import HttpFetcher
from serp_tracker.serp import SerpAcquirer

logger = logging.getLogger(__name__)


def wait_interval(sleep: Callable[[float], None] = time.sleep) -> float:
    """リクエスト間隔を 1〜3 秒ランダムで待機する."""
    interval = random.uniform(REQUEST_INTERVAL_MIN, REQUEST_INTERVAL_MAX)
    sleep(interval)
    return interval


class RankTracker:
    """ドメインの検索順位を取得する."""

    def __init__(
        self,
        acquirer: SerpAcquirer,
        sleep: Callable[[float], None] = time.sleep,
        max_keywords: int = MAX_BATCH_KEYWORDS,
    ):
        self.acquirer = acquirer
        self.sleep = sleep
        self.max_keywords = max_keywords

    def track_keyword(self, domain: str, keyword: str, engine: Engine | str | None = None) -> RankRecord:
        """1キーワードの順位を取得する.

        キーワードは呼び出し元の表記のまま検索に使う（正規化はキャッシュキーのみ）。

        Raises:
            InvalidInputError: ドメイン・キーワードが空、または未対応エンジン
            ExhaustedStrategiesError: 全取得戦略が失敗
        """
        engine = Engine.parse(engine)
        if not is_valid_domain(domain):
            raise InvalidInputError(f"Invalid domain: {domain!r}")
        if not (keyword or "").strip():
            raise InvalidInputError("Keyword is required")

        logger.info(
            "順位取得: domain=%s, keyword=%s, engine=%s", domain, keyword, engine.value,
        )
        serp = self.acquirer.acquire(keyword, engine)
        record = resolve(RankQuery(domain=domain, keyword=keyword, engine=engine), serp)

        status = f"{record.position}位" if record.position else "圏外"
        logger.info("  %s / %s → %s (%d 件中)", record.domain, keyword, status, record.total_results)
        return record

    def run_batch(
        self, domain: str, keywords: list[str], engine: Engine | str | None = None
    ) -> BatchRankReport:
        """複数キーワードを逐次処理して集計レポートを返す.

        1キーワードの失敗でバッチは中断しない。失敗したキーワードは圏外の
        プレースホルダとして記録し、入力と同じ長さ・順序の結果を返す。
        """
        engine = Engine.parse(engine)
        if not is_valid_domain(domain):
            raise InvalidInputError(f"Invalid domain: {domain!r}")
        if not keywords:
            raise InvalidInputError("At least one keyword is required")
        if len(keywords) > self.max_keywords:
            raise InvalidInputError(f"Maximum {self.max_keywords} keywords allowed per batch")

        normalized = normalize_domain(domain)
        report = BatchRankReport(domain=normalized, engine=engine)
        logger.info(
            "=== バッチ開始: domain=%s, engine=%s, %d キーワード ===",
            normalized, engine.value, len(keywords),
        )
        start_time = time.time()

        for i, keyword in enumerate(keywords):
            if i > 0:
                wait_interval(self.sleep)

            try:
                record = self.track_keyword(domain, keyword, engine)
            except RankTrackerError as e:
                logger.warning("スキップ: keyword=%s, error=%s", keyword, e)
                record = RankRecord.placeholder(
                    keyword=keyword,
                    domain=normalized,
                    engine=engine,
                    search_url=search_url(engine, keyword or ""),
                )
            report.results.append(record)
            logger.info("進捗: %d/%d", i + 1, len(keywords))

        report.finalize()
        logger.info(
            "=== バッチ完了: %d/%d 件ヒット, 所要時間 %.1f 秒 ===",
            report.summary.found, report.summary.total_keywords, time.time() - start_time,
        )
        return report


def build_tracker(browser_enabled: bool = BROWSER_ENABLED) -> RankTracker:
    """設定からキャッシュ・フェッチャ・トラッカーを組み立てる（プロセス起動時に1回）."""
    browser = BrowserFetcher() if browser_enabled else None

    acquirer = SerpAcquirer(cache=SerpCache(), browser=browser, http=HttpFetcher())
    return RankTracker(acquirer)
