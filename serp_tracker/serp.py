"""検索結果取得のオーケストレーション.

状態遷移:
  キャッシュ確認 → (ヒット) → 完了
  キャッシュ確認 → (ミス) → ブラウザ取得 → (成功) → キャッシュ保存して完了
  ブラウザ取得 → (失敗) → HTTP 取得 → (成功・0件含む) → キャッシュ保存して完了
  HTTP 取得 → (失敗) → ExhaustedStrategiesError

0 件でも成功した結果はキャッシュする（TTL 内に高コストなブラウザ取得を繰り返さない）。
"""

from __future__ import annotations

import logging
from typing import Protocol

from serp_tracker.cache import SerpCache
from serp_tracker.engines import search_url
from serp_tracker.errors import ExhaustedStrategiesError, TransientFetchError
from serp_tracker.models import Engine, SerpResult
from serp_tracker.normalize import normalize_keyword

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    source: str

    def served_engine(self, engine: Engine | str) -> Engine: ...

    def fetch(self, keyword: str, engine: Engine | str) -> list[str]: ...


class SerpAcquirer:
    """キャッシュ → ブラウザ → HTTP の順に検索結果を取得する."""

    def __init__(
        self,
        cache: SerpCache,
        browser: Fetcher | None = None,
        http: Fetcher | None = None,
    ):
        self.cache = cache
        self.browser = browser
        self.http = http

    def acquire(self, keyword: str, engine: Engine | str) -> SerpResult:
        engine = Engine.parse(engine)

        cached = self.cache.get(engine, keyword)
        if cached is not None:
            logger.info("キャッシュ利用: engine=%s, keyword=%s", engine.value, keyword)
            return cached

        causes: list[Exception] = []
        for fetcher in (self.browser, self.http):
            if fetcher is None:
                continue
            try:
                served = fetcher.served_engine(engine)
                links = fetcher.fetch(keyword, engine)
            except Exception as e:
                # TransientFetchError 以外（ブラウザのクラッシュ等）も失敗遷移として扱う
                level = logging.WARNING if isinstance(e, TransientFetchError) else logging.ERROR
                logger.log(
                    level, "%s 取得失敗: engine=%s, keyword=%s, error=%r",
                    fetcher.source, engine.value, keyword, e,
                )
                causes.append(e)
                continue

            result = SerpResult(
                engine=engine,
                normalized_keyword=normalize_keyword(keyword),
                ordered_links=tuple(links),
                search_url=search_url(engine, keyword),
                served_by_engine=served,
                source=fetcher.source,
            )
            self.cache.put(engine, keyword, result)
            return result

        if not causes:
            raise ExhaustedStrategiesError(
                f"No fetch strategy is configured for {engine.value}", causes,
            )
        logger.error(
            "全取得戦略が失敗: engine=%s, keyword=%s, causes=%d", engine.value, keyword, len(causes),
        )
        raise ExhaustedStrategiesError(
            f"Failed to fetch SERP data from {engine.value}; all fetch strategies were exhausted.",
            causes,
        )
