"""検索結果のインメモリ TTL キャッシュ.

キーは (エンジン, 正規化キーワード)。期限切れエントリは get 時に遅延削除し、
put 時にも他の期限切れをまとめて掃除する。プロセス再起動をまたいでは共有しない。
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from serp_tracker.config import CACHE_TTL_SECONDS
from serp_tracker.models import CacheEntry, Engine, SerpResult
from serp_tracker.normalize import normalize_keyword

logger = logging.getLogger(__name__)


class SerpCache:
    """スレッドセーフな SerpResult キャッシュ."""

    def __init__(self, ttl: float = CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[tuple[Engine, str], CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def _key(engine: Engine | str, keyword: str) -> tuple[Engine, str]:
        return Engine.parse(engine), normalize_keyword(keyword)

    def get(self, engine: Engine | str, keyword: str) -> SerpResult | None:
        key = self._key(engine, keyword)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._clock() >= entry.expires_at:
                del self._entries[key]
                entry = None
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def put(self, engine: Engine | str, keyword: str, result: SerpResult) -> None:
        key = self._key(engine, keyword)
        with self._lock:
            now = self._clock()
            self._purge_locked(now)
            self._entries[key] = CacheEntry(key=key, value=result, expires_at=now + self.ttl)
        logger.debug("キャッシュ保存: engine=%s, keyword=%s", key[0].value, key[1])

    def purge_expired(self) -> int:
        """期限切れエントリを削除し、削除件数を返す."""
        with self._lock:
            return self._purge_locked(self._clock())

    def _purge_locked(self, now: float) -> int:
        expired = [k for k, e in self._entries.items() if now >= e.expires_at]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict:
        with self._lock:
            return {"keys": len(self._entries), "hits": self._hits, "misses": self._misses}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
