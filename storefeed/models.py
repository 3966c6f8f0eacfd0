"""
Core data structures shared by the storefeed pipeline.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


class SourceKind(str, Enum):
    RSS = "rss"
    WORDPRESS = "wordpress"
    EVENT_API = "event_api"
    GOODSMILE = "goodsmile"
    KOTOBUKIYA = "kotobukiya"
    ANIMATE = "animate"
    HTML = "html"
    SHOPIFY = "shopify"

    @classmethod
    def resolve(cls, value: Optional[str]) -> Optional["SourceKind"]:
        if not value:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class SourceFamily(str, Enum):
    RSS = "rss"
    API = "api"
    SCRAPE = "scrape"


FAMILY_DEFAULTS: Dict[SourceFamily, Dict[str, str]] = {
    SourceFamily.RSS: {"type": SourceKind.RSS.value, "category": "news"},
    SourceFamily.API: {"type": SourceKind.WORDPRESS.value, "category": "events"},
    SourceFamily.SCRAPE: {"type": SourceKind.HTML.value, "category": "products"},
}

_KNOWN_KEYS = {
    "name", "type", "language", "category", "url", "urls", "params", "pages",
    "filterTags", "filter_tags", "storeTag", "store_tag", "baseUrl", "base_url", "limit",
}


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(v) for v in value if isinstance(v, (str, int)) and str(v).strip()]


@dataclass
class SourceDescriptor:
    """
    One configured upstream origin. ``kind`` keeps the raw type string so the
    dispatcher can log unknown values instead of failing at load time.
    """

    name: str
    kind: str
    family: SourceFamily
    language: str = "ja"
    category: str = "news"
    url: Optional[str] = None
    urls: List[str] = field(default_factory=list)
    params: Dict[str, Any] = field(default_factory=dict)
    pages: int = 1
    filter_tags: List[str] = field(default_factory=list)
    store_tag: Optional[str] = None
    base_url: Optional[str] = None
    limit: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def source_kind(self) -> Optional[SourceKind]:
        return SourceKind.resolve(self.kind)

    def all_urls(self) -> List[str]:
        urls = list(self.urls)
        if self.url and self.url not in urls:
            urls.insert(0, self.url)
        return urls

    @classmethod
    def from_config(cls, raw: Dict[str, Any], family: SourceFamily) -> "SourceDescriptor":
        defaults = FAMILY_DEFAULTS[family]
        name = str(raw.get("name") or raw.get("url") or "unnamed source")
        pages = raw.get("pages", 1)
        limit = raw.get("limit")
        try:
            pages = max(1, int(pages))
        except (TypeError, ValueError):
            logger.warning("Source %s has invalid pages=%r; using 1", name, pages)
            pages = 1
        try:
            limit = int(limit) if limit is not None else None
        except (TypeError, ValueError):
            logger.warning("Source %s has invalid limit=%r; using adapter default", name, limit)
            limit = None
        params = raw.get("params")
        return cls(
            name=name,
            kind=str(raw.get("type") or defaults["type"]),
            family=family,
            language=str(raw.get("language") or "ja"),
            category=str(raw.get("category") or defaults["category"]),
            url=raw.get("url"),
            urls=_as_list(raw.get("urls")),
            params=params if isinstance(params, dict) else {},
            pages=pages,
            filter_tags=_as_list(raw.get("filterTags") or raw.get("filter_tags")),
            store_tag=raw.get("storeTag") or raw.get("store_tag"),
            base_url=raw.get("baseUrl") or raw.get("base_url"),
            limit=limit,
            extra={k: v for k, v in raw.items() if k not in _KNOWN_KEYS},
        )


@dataclass
class FilterConfig:
    exclude_chains: bool = False
    chain_terms: List[str] = field(default_factory=list)
    keep_terms: List[str] = field(default_factory=list)
    goods_keywords: List[str] = field(default_factory=list)


@dataclass
class SourcesConfig:
    rss: List[SourceDescriptor] = field(default_factory=list)
    api: List[SourceDescriptor] = field(default_factory=list)
    scrape: List[SourceDescriptor] = field(default_factory=list)
    filters: FilterConfig = field(default_factory=FilterConfig)

    def all_sources(self) -> Iterator[SourceDescriptor]:
        yield from self.rss
        yield from self.api
        yield from self.scrape

    def __len__(self) -> int:
        return len(self.rss) + len(self.api) + len(self.scrape)


@dataclass(frozen=True)
class NormalizedItem:
    """
    Normalized representation of a product/event/news record across all upstream sources.
    """

    id: str
    title: str
    summary: str
    link: str
    source: str
    published_at: datetime
    language: str
    category: str
    image: Optional[str] = None
    store_tag: Optional[str] = None
    translated: bool = False
    original_title: Optional[str] = None
    price: Optional[str] = None
    event_start: Optional[datetime] = None
    event_end: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "link": self.link,
            "image": self.image,
            "source": self.source,
            "storeTag": self.store_tag,
            "publishedAt": self.published_at.isoformat(),
            "category": self.category,
            "language": self.language,
            "translated": self.translated,
            "price": self.price,
        }
        if self.original_title:
            payload["originalTitle"] = self.original_title
        if self.event_start:
            payload["eventStart"] = self.event_start.isoformat()
        if self.event_end:
            payload["eventEnd"] = self.event_end.isoformat()
        return payload


@dataclass
class HealthStatus:
    name: str
    healthy: bool
    kind: Optional[str] = None
    last_error: Optional[str] = None
    last_success: Optional[datetime] = None
    items_last_fetch: int = 0
    latency_ms: Optional[float] = None
    extra: Dict[str, str] = field(default_factory=dict)


@dataclass
class PipelineResult:
    items: List[NormalizedItem]
    generated_at: datetime
    health: List[HealthStatus]
