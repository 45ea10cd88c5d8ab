"""順位判定モジュール."""

from __future__ import annotations

import logging

from serp_tracker.config import RANK_MATCH_MODE
from serp_tracker.models import RankQuery, RankRecord, SerpResult, Visibility
from serp_tracker.normalize import link_hostname, normalize_domain, to_ascii_host

logger = logging.getLogger(__name__)

SUBSTRING = "substring"
STRICT = "strict"


def domain_matches(target: str, host: str, mode: str = SUBSTRING) -> bool:
    """リンクのホストが対象ドメインに属するか.

    substring: どちらかがもう一方の部分文字列なら一致（サブドメイン・www 揺れに寛容だが、
               "ab.com" と "fab.com" のような誤一致がありうる）
    strict:    完全一致、またはサブドメイン（"blog.example.com" は "example.com" に一致）
    国際化ドメインは punycode 表記にそろえて比較する。
    """
    if not target or not host:
        return False
    target, host = to_ascii_host(target), to_ascii_host(host)
    if mode == STRICT:
        return host == target or host.endswith(f".{target}")
    return target in host or host in target


def classify_visibility(position: int | None) -> Visibility:
    if position is not None and position <= 5:
        return Visibility.EASY
    if position is not None and position <= 20:
        return Visibility.MEDIUM
    return Visibility.HARD


def find_position(
    domain: str, links: tuple[str, ...] | list[str], mode: str = SUBSTRING
) -> tuple[int | None, str | None]:
    """リンクリストから対象ドメインの順位を見つける.

    Returns:
        (順位（1始まり）, 一致した URL)。見つからなければ (None, None)（圏外）。
    """
    for i, link in enumerate(links, start=1):
        if domain_matches(domain, link_hostname(link), mode):
            return i, link
    return None, None


def resolve(query: RankQuery, serp: SerpResult, match_mode: str = RANK_MATCH_MODE) -> RankRecord:
    """検索結果から RankRecord を組み立てる."""
    domain = normalize_domain(query.domain)
    position, matched_url = find_position(domain, serp.ordered_links, match_mode)

    if position is None:
        logger.debug("圏外: domain=%s, 検索結果 %d 件", domain, len(serp.ordered_links))
    else:
        logger.debug("%d 位: domain=%s, url=%s", position, domain, matched_url)

    return RankRecord(
        keyword=query.keyword,
        domain=domain,
        engine=query.engine,
        position=position,
        top3=position is not None and position <= 3,
        top10=position is not None and position <= 10,
        top20=position is not None and position <= 20,
        first_page=position is not None and position <= 10,
        visibility=classify_visibility(position),
        matched_url=matched_url,
        total_results=len(serp.ordered_links),
        search_url=serp.search_url,
        served_by_engine=serp.served_by_engine,
    )
