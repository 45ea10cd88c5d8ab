"""データモデル定義."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from serp_tracker.config import DEFAULT_ENGINE
from serp_tracker.errors import UnsupportedEngineError


class Engine(str, Enum):
    """対応検索エンジン."""

    GOOGLE = "google"
    BING = "bing"
    YAHOO = "yahoo"
    DUCKDUCKGO = "duckduckgo"

    @classmethod
    def parse(cls, value: Engine | str | None) -> Engine:
        """大文字小文字・前後空白を無視してエンジン名を解釈する.

        None や空文字は既定エンジンになる。
        """
        if isinstance(value, cls):
            return value
        name = (value or "").strip().lower() or DEFAULT_ENGINE
        try:
            return cls(name)
        except ValueError:
            raise UnsupportedEngineError(f"Unsupported search engine: {value}") from None


class Visibility(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class RankQuery:
    """1回の順位照会リクエスト."""

    domain: str
    keyword: str
    engine: Engine


@dataclass(frozen=True)
class SerpResult:
    """取得済み検索結果（キャッシュ所有・読み取り専用）."""

    engine: Engine  # 要求されたエンジン
    normalized_keyword: str
    ordered_links: tuple[str, ...]  # 並び順 = 順位
    search_url: str
    served_by_engine: Engine  # 実際に結果を返したエンジン
    source: str  # "browser" or "http"
    fetched_at: str = field(default_factory=_now_iso)

    @property
    def substituted(self) -> bool:
        return self.served_by_engine != self.engine


@dataclass
class CacheEntry:
    key: tuple[Engine, str]
    value: SerpResult
    expires_at: float


@dataclass(frozen=True)
class RankRecord:
    """1キーワード×1エンジンの順位判定結果."""

    keyword: str
    domain: str  # 正規化済み
    engine: Engine
    position: int | None  # None = 圏外
    top3: bool
    top10: bool
    top20: bool
    first_page: bool
    visibility: Visibility
    matched_url: str | None
    total_results: int
    search_url: str
    served_by_engine: Engine
    timestamp: str = field(default_factory=_now_iso)

    @classmethod
    def placeholder(cls, keyword: str, domain: str, engine: Engine, search_url: str) -> RankRecord:
        """取得失敗時に配列長を保つための圏外レコード."""
        return cls(
            keyword=keyword,
            domain=domain,
            engine=engine,
            position=None,
            top3=False,
            top10=False,
            top20=False,
            first_page=False,
            visibility=Visibility.HARD,
            matched_url=None,
            total_results=0,
            search_url=search_url,
            served_by_engine=engine,
        )

    def to_dict(self) -> dict:
        return {
            "keyword": self.keyword,
            "domain": self.domain,
            "searchEngine": self.engine.value,
            "position": self.position,
            "top3": self.top3,
            "top10": self.top10,
            "top20": self.top20,
            "firstPage": self.first_page,
            "visibility": self.visibility.value,
            "matchedUrl": self.matched_url,
            "totalResults": self.total_results,
            "searchUrl": self.search_url,
            "servedByEngine": self.served_by_engine.value,
            "timestamp": self.timestamp,
        }


@dataclass
class BatchSummary:
    total_keywords: int = 0
    found: int = 0
    top3_count: int = 0
    top10_count: int = 0
    top20_count: int = 0
    average_position: float | None = None  # 圏外は平均に含めない


@dataclass
class BatchRankReport:
    """バッチ実行の集計レポート."""

    domain: str
    engine: Engine
    results: list[RankRecord] = field(default_factory=list)
    summary: BatchSummary = field(default_factory=BatchSummary)

    def finalize(self) -> BatchRankReport:
        """results からサマリを計算する."""
        positions = [r.position for r in self.results if r.position is not None]
        average = round(sum(positions) / len(positions), 2) if positions else None
        self.summary = BatchSummary(
            total_keywords=len(self.results),
            found=len(positions),
            top3_count=sum(1 for r in self.results if r.top3),
            top10_count=sum(1 for r in self.results if r.top10),
            top20_count=sum(1 for r in self.results if r.top20),
            average_position=average,
        )
        return self

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "searchEngine": self.engine.value,
            "results": [r.to_dict() for r in self.results],
            "summary": {
                "totalKeywords": self.summary.total_keywords,
                "found": self.summary.found,
                "top3": self.summary.top3_count,
                "top10": self.summary.top10_count,
                "top20": self.summary.top20_count,
                "averagePosition": self.summary.average_position,
            },
        }
