"""ドメイン・キーワードの正規化."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

_SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.\-]*://", re.IGNORECASE)
_HOSTNAME_PATTERN = re.compile(r"^[a-z0-9\-_.]+\.[a-z0-9\-]+$")


def _strip_to_host(value: str) -> str:
    value = value.strip().lower()
    if not value:
        return ""

    try:
        parsed = urlsplit(value if _SCHEME_PATTERN.match(value) else f"https://{value}")
        host = parsed.hostname or ""
    except ValueError:
        host = ""

    if not host:
        host = _SCHEME_PATTERN.sub("", value).split("/", 1)[0].split("?", 1)[0]

    host = host.strip().rstrip(".")
    while host.startswith("www."):
        host = host[4:]
    return host.strip()


def normalize_domain(raw: str) -> str:
    """URL またはホスト名を比較用のホスト名に正規化する.

    スキーム・先頭の www.・パス・ポート・末尾スラッシュを除去し小文字化する。
    パースできない入力でも例外は出さず、文字列の除去だけで済ませる。
    """
    host = _strip_to_host(raw or "")
    # 除去の結果、新たに空白や "www." が端に現れることがあるため変化がなくなるまで繰り返す
    while True:
        again = _strip_to_host(host)
        if again == host:
            return host
        host = again


def to_ascii_host(host: str) -> str:
    """国際化ドメインを punycode 表記にする（変換できなければそのまま返す）."""
    try:
        return host.encode("idna").decode("ascii")
    except UnicodeError:
        return host


def normalize_keyword(raw: str) -> str:
    """キャッシュキー用にキーワードを正規化する（検索クエリには使わない）."""
    return " ".join((raw or "").split()).lower()


def link_hostname(url: str) -> str:
    """検索結果リンクのホスト名."""
    return normalize_domain(url)


def is_valid_domain(raw: str) -> bool:
    """正規化後にホスト名らしい文字列が残るか（国際化ドメインは punycode で判定）."""
    host = normalize_domain(raw)
    if not host:
        return False
    try:
        ascii_host = host.encode("idna").decode("ascii")
    except UnicodeError:
        return False
    return _HOSTNAME_PATTERN.match(ascii_host) is not None or ascii_host == "localhost"
