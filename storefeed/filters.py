"""
Filter/dedup stage: drops invalid items, collapses duplicate titles and,
optionally, mass-market chain content that is not exclusive to the shops we follow.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Pattern, Sequence

from storefeed.models import NormalizedItem

logger = logging.getLogger(__name__)

DEFAULT_CHAIN_TERMS = [
    "ドン・キホーテ", "イオン", "ユニクロ", "しまむら", "ダイソー",
    "セブン-イレブン", "ローソン", "ファミリーマート", "マクドナルド", "すき家",
    "Don Quijote", "AEON", "UNIQLO", "GU", "Daiso",
    "7-Eleven", "Lawson", "FamilyMart", "McDonald's",
]

DEFAULT_KEEP_TERMS = [
    "限定", "先行", "コラボ", "ポップアップ", "受注",
    "exclusive", "limited", "pop-up", "collab", "pre-order",
]

DEFAULT_GOODS_KEYWORDS = [
    "figure", "nendoroid", "figma", "plush", "merch", "goods", "collectible",
    "model kit", "gunpla", "acrylic stand", "tapestry", "gashapon", "ichiban kuji",
    "event", "exhibition", "pop-up", "collab", "cafe",
    "pre-order", "preorder", "release date", "on sale", "limited edition", "exclusive",
    "フィギュア", "ねんどろいど", "グッズ", "予約", "発売", "限定",
    "イベント", "コラボ", "展示", "プライズ", "アクリルスタンド", "ガシャポン", "一番くじ",
]

_LATIN_RE = re.compile(r"^[\x00-\x7f]+$")


def _is_latin(term: str) -> bool:
    return bool(_LATIN_RE.match(term))


def _word_pattern(term: str) -> Pattern[str]:
    # \b fails next to punctuation such as "McDonald's" or "7-Eleven", so use look-arounds.
    return re.compile(r"(?<![A-Za-z0-9])" + re.escape(term) + r"(?![A-Za-z0-9])", re.IGNORECASE)


@dataclass
class TermMatcher:
    """Substring match for Japanese terms, whole-word match for Latin ones."""

    terms: Sequence[str]
    _substrings: List[str] = field(init=False, default_factory=list)
    _patterns: List[Pattern[str]] = field(init=False, default_factory=list)

    def __post_init__(self) -> None:
        for term in self.terms:
            term = term.strip()
            if not term:
                continue
            if _is_latin(term):
                self._patterns.append(_word_pattern(term))
            else:
                self._substrings.append(term.lower())

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        if any(term in lowered for term in self._substrings):
            return True
        return any(pattern.search(text) for pattern in self._patterns)


class ChainFilter:
    def __init__(self, chain_terms: Optional[Sequence[str]] = None, keep_terms: Optional[Sequence[str]] = None) -> None:
        self.chains = TermMatcher(chain_terms if chain_terms else DEFAULT_CHAIN_TERMS)
        self.keep = TermMatcher(keep_terms if keep_terms else DEFAULT_KEEP_TERMS)

    def excludes(self, item: NormalizedItem) -> bool:
        text = f"{item.title} {item.summary} {item.source}"
        if not self.chains.matches(text):
            return False
        return not self.keep.matches(text)


def _is_blank(value: Optional[str]) -> bool:
    return not value or not value.strip()


def filter_items(items: Iterable[NormalizedItem], *, chain_filter: Optional[ChainFilter] = None) -> List[NormalizedItem]:
    items = list(items)
    seen_titles = set()
    kept: List[NormalizedItem] = []
    dropped_invalid = dropped_duplicate = dropped_chain = 0
    for item in items:
        if _is_blank(item.title) or _is_blank(item.link):
            dropped_invalid += 1
            continue
        title_key = item.title.strip().lower()
        if title_key in seen_titles:
            dropped_duplicate += 1
            continue
        if chain_filter is not None and chain_filter.excludes(item):
            dropped_chain += 1
            continue
        seen_titles.add(title_key)
        kept.append(item)
    logger.info(
        "Filtered: %s items -> %s items (invalid=%s, duplicate titles=%s, chains=%s)",
        len(items),
        len(kept),
        dropped_invalid,
        dropped_duplicate,
        dropped_chain,
    )
    return kept


def keep_relevant(
    items: Iterable[NormalizedItem],
    keywords: Optional[Sequence[str]] = None,
    *,
    always_pass_categories: Sequence[str] = ("products",),
) -> List[NormalizedItem]:
    """Keep product items, plus anything else that mentions a goods/event keyword."""
    lowered = [keyword.lower() for keyword in (keywords or DEFAULT_GOODS_KEYWORDS)]
    items = list(items)
    kept = [
        item
        for item in items
        if item.category in always_pass_categories
        or any(keyword in f"{item.title} {item.summary}".lower() for keyword in lowered)
    ]
    logger.info("Relevance filter: %s items -> %s items", len(items), len(kept))
    return kept
