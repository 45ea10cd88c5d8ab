"""設定モジュール — 環境変数・定数定義."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env はプロジェクトルートに配置
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# --- 検索エンジン ---
# 既定エンジン。静的 HTML 取得に最も寛容な DuckDuckGo を使う
DEFAULT_ENGINE = os.getenv("DEFAULT_ENGINE", "duckduckgo")

# 深い順位まで1回で見えるよう、件数パラメータを付けておく
SEARCH_URL_TEMPLATES = {
    "google": "https://www.google.com/search?q={keyword}&num=100",
    "bing": "https://www.bing.com/search?q={keyword}&count=50",
    "yahoo": "https://search.yahoo.com/search?p={keyword}&n=50",
    "duckduckgo": "https://html.duckduckgo.com/html/?q={keyword}",
}

# --- User-Agent ---
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:133.0) "
    "Gecko/20100101 Firefox/133.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:133.0) "
    "Gecko/20100101 Firefox/133.0",
]

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Upgrade-Insecure-Requests": "1",
}

# --- リクエスト設定 ---
REQUEST_INTERVAL_MIN = float(os.getenv("REQUEST_INTERVAL_MIN", "1.0"))
REQUEST_INTERVAL_MAX = float(os.getenv("REQUEST_INTERVAL_MAX", "3.0"))
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "15"))  # 秒

# --- ブラウザ ---
BROWSER_ENABLED = _env_bool("BROWSER_ENABLED", True)
BROWSER_HEADLESS = _env_bool("BROWSER_HEADLESS", True)
BROWSER_NAV_TIMEOUT_MS = int(os.getenv("BROWSER_NAV_TIMEOUT_MS", "30000"))
HUMAN_DELAY_MIN = 2.0  # 秒
HUMAN_DELAY_MAX = 5.0

# --- 抽出・照合 ---
MAX_LINKS = int(os.getenv("MAX_LINKS", "20"))
ALLOW_ENGINE_SUBSTITUTION = _env_bool("ALLOW_ENGINE_SUBSTITUTION", True)
RANK_MATCH_MODE = os.getenv("RANK_MATCH_MODE", "substring")  # "substring" or "strict"

# --- キャッシュ ---
CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "600"))

# --- バッチ ---
MAX_BATCH_KEYWORDS = int(os.getenv("MAX_BATCH_KEYWORDS", "20"))

# --- ログ ---
LOG_DIR = Path(os.getenv("LOG_DIR", str(_PROJECT_ROOT / "logs")))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
