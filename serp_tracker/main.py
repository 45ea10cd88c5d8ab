"""検索順位トラッカー — コマンドラインエントリーポイント.

使い方:
  serp-rank example.com "keyword"                     # 単一キーワード
  serp-rank example.com "kw1" "kw2" --engine bing     # バッチ

結果は JSON で標準出力に書き出す。失敗時は構造化エラーを出力して終了コード 1。
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime

from serp_tracker.config import BROWSER_ENABLED, DEFAULT_ENGINE, LOG_DIR, LOG_LEVEL
from serp_tracker.errors import RankTrackerError, error_payload
from serp_tracker.tracker import build_tracker


def setup_logging() -> None:
    """ロギングの初期設定."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = LOG_DIR / f"serp_tracker_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="serp-rank", description="Find a domain's organic rank for keywords.",
    )
    parser.add_argument("domain", help="target domain or URL")
    parser.add_argument("keywords", nargs="+", help="one or more keywords")
    parser.add_argument("--engine", default=DEFAULT_ENGINE, help="google, bing, yahoo or duckduckgo")
    parser.add_argument(
        "--no-browser", action="store_true", help="skip browser automation and use HTTP only",
    )
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> int:
    """メイン処理."""
    args = parse_args(argv)
    setup_logging()
    logger = logging.getLogger(__name__)

    tracker = build_tracker(browser_enabled=BROWSER_ENABLED and not args.no_browser)
    try:
        if len(args.keywords) == 1:
            result = tracker.track_keyword(args.domain, args.keywords[0], args.engine).to_dict()
        else:
            result = tracker.run_batch(args.domain, args.keywords, args.engine).to_dict()
    except RankTrackerError as e:
        logger.error("順位取得失敗: %s", e)
        print(json.dumps(error_payload(e), ensure_ascii=False, indent=2))
        return 1

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(run())
