"""例外定義.

取得層が送出し、オーケストレータが回復し、バッチではプレースホルダに
格下げされる。呼び出し側には kind で「防御的ブロック」「入力不正」
「タイムアウト」を区別して返す。
"""

from __future__ import annotations

BLOCKED = "blocked"
INVALID_INPUT = "invalid_input"
TIMEOUT = "timeout"
UNREACHABLE = "unreachable"
UNSUPPORTED_ENGINE = "unsupported_engine"


class RankTrackerError(Exception):
    """順位取得で発生するエラーの基底クラス."""

    kind = UNREACHABLE

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class TransientFetchError(RankTrackerError):
    """単一の取得戦略の失敗（次の戦略で回復可能）."""


class FetchTimeoutError(TransientFetchError):
    kind = TIMEOUT


class BlockedError(TransientFetchError):
    """検索エンジン側の CAPTCHA・レート制限."""

    kind = BLOCKED


class InvalidInputError(RankTrackerError):
    kind = INVALID_INPUT


class UnsupportedEngineError(InvalidInputError):
    kind = UNSUPPORTED_ENGINE


class ExhaustedStrategiesError(RankTrackerError):
    """ブラウザ・HTTP の両戦略が失敗した."""

    def __init__(self, message: str, causes: list[Exception]):
        details = "; ".join(f"{type(c).__name__}: {c}" for c in causes) or None
        super().__init__(message, details)
        self.causes = causes
        self.kind = _classify(causes)


def _classify(causes: list[Exception]) -> str:
    if any(isinstance(c, BlockedError) for c in causes):
        return BLOCKED
    if causes and isinstance(causes[-1], FetchTimeoutError):
        return TIMEOUT
    if causes and isinstance(causes[-1], UnsupportedEngineError):
        return UNSUPPORTED_ENGINE
    return UNREACHABLE


_KIND_MESSAGES = {
    BLOCKED: "The search engine blocked automated access (captcha or rate limit). Try again later.",
    INVALID_INPUT: "Invalid domain or keyword.",
    TIMEOUT: "The search engine did not respond in time.",
    UNREACHABLE: "The search engine could not be reached.",
    UNSUPPORTED_ENGINE: "This search engine is not supported in this environment.",
}


def error_payload(exc: Exception) -> dict:
    """呼び出し側に返す構造化エラーを組み立てる."""
    if isinstance(exc, RankTrackerError):
        return {
            "message": f"{_KIND_MESSAGES[exc.kind]} {exc.message}".strip(),
            "kind": exc.kind,
            "details": exc.details,
        }
    return {
        "message": "Error tracking keyword ranking",
        "kind": UNREACHABLE,
        "details": str(exc) or type(exc).__name__,
    }
