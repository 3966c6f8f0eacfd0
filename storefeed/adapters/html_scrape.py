"""
Adapter for shop/news listing pages without a feed.

Every site kind is described by a ``ScrapeProfile``; the adapter turns the
profile into an ordered list of extraction strategies (JSON-LD first when the
site embeds it, then each container selector, then a link-pattern fallback)
and keeps the first one that finds anything.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from storecrawl.extractors.og_jsonld import parse_item_list
from storecrawl.extractors.selectors import Strategy, anchor_cards, run_cascade, select_cards
from storecrawl.infra.http import HttpFetcher
from storecrawl.pipelines.dedupe import dedupe_by_key
from storecrawl.schemas.models import ScrapedCard

from storefeed.adapters.base import RECORD_ERRORS, source_status
from storefeed.models import HealthStatus, NormalizedItem, SourceDescriptor, SourceKind
from storefeed.normalize import (
    SUMMARY_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    absolutize_url,
    clean_title,
    extract_price,
    generate_id,
    is_placeholder_image,
    is_valid_product,
    normalize_image_url,
    parse_loose_date,
    strip_html,
    truncate,
)

logger = logging.getLogger(__name__)

DEFAULT_ITEM_CAP = 15


@dataclass(frozen=True)
class ScrapeProfile:
    container_selectors: Sequence[str]
    title_selectors: Sequence[str] = ()
    date_selectors: Sequence[str] = ()
    price_selectors: Sequence[str] = ()
    link_patterns: Sequence[str] = ()
    base_url: Optional[str] = None
    structured_data: bool = False
    summary_template: str = "{title}"


SCRAPE_PROFILES: Dict[SourceKind, ScrapeProfile] = {
    SourceKind.GOODSMILE: ScrapeProfile(
        base_url="https://www.goodsmile.info",
        container_selectors=(".hitItem", ".productItem", '[class*="product"]'),
        title_selectors=("a[title]", ".hitTtl a", ".productName a", "h3 a", "h4 a"),
        date_selectors=(".hitDate", ".productDate", '[class*="date"]'),
        price_selectors=(".hitPrice", '[class*="price"]'),
        link_patterns=("/product/",),
        summary_template="New product announcement from Good Smile Company: {title}",
    ),
    SourceKind.KOTOBUKIYA: ScrapeProfile(
        base_url="https://www.kotobukiya.co.jp",
        container_selectors=("article", ".product-item", ".product-card", '[class*="product"]', ".entry", "li.item"),
        title_selectors=("h2 a", "h3 a", "h4 a", ".product-title a", ".entry-title a", "a.title"),
        date_selectors=("time", ".date", '[class*="date"]'),
        price_selectors=('[class*="price"]',),
        link_patterns=("/product/",),
        summary_template="New figure from Kotobukiya: {title}",
    ),
    SourceKind.ANIMATE: ScrapeProfile(
        base_url="https://www.animate-onlineshop.jp",
        structured_data=True,
        container_selectors=(".item_list li", ".product_list li", '[class*="item_box"]'),
        title_selectors=(".item_name a", ".name a", "h3 a"),
        date_selectors=(".release", ".date", "time"),
        price_selectors=(".price", '[class*="price"]'),
        link_patterns=("/pn/", "/products/", "/news/"),
        summary_template="{source}: {title}",
    ),
    SourceKind.HTML: ScrapeProfile(
        structured_data=True,
        container_selectors=("article", ".news-item", ".event-item", ".product-item", "li.item"),
        title_selectors=("h2 a", "h3 a", ".title a", ".ttl a"),
        date_selectors=("time", ".date", '[class*="date"]'),
        price_selectors=('[class*="price"]',),
        link_patterns=("/news/", "/event/", "/events/", "/topics/", "/product/", "/products/", "/item/"),
        summary_template="{source}: {title}",
    ),
}


def build_strategies(profile: ScrapeProfile) -> List[Tuple[str, Strategy]]:
    strategies: List[Tuple[str, Strategy]] = []
    if profile.structured_data:
        strategies.append(("jsonld-itemlist", parse_item_list))
    for selector in profile.container_selectors:
        strategies.append(
            (
                selector,
                partial(
                    select_cards,
                    container_selector=selector,
                    title_selectors=profile.title_selectors,
                    date_selectors=profile.date_selectors,
                    price_selectors=profile.price_selectors,
                    reject_image=is_placeholder_image,
                ),
            )
        )
    if profile.link_patterns:
        strategies.append(
            ("link-fallback", partial(anchor_cards, link_patterns=profile.link_patterns, reject_image=is_placeholder_image))
        )
    return strategies


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}" if parts.scheme and parts.netloc else url


class HtmlScrapeAdapter:
    name = "html"

    def __init__(
        self,
        user_agent: str,
        timeout: float = 20,
        min_delay: float = 1.0,
        profiles: Optional[Dict[SourceKind, ScrapeProfile]] = None,
    ) -> None:
        self.fetcher = HttpFetcher(user_agent=user_agent, min_delay=min_delay, timeout=timeout)
        self.profiles = profiles or SCRAPE_PROFILES

    def fetch(self, source: SourceDescriptor, *, now: datetime) -> Tuple[List[NormalizedItem], HealthStatus]:
        started = time.time()
        profile = self.profiles.get(source.source_kind) or self.profiles[SourceKind.HTML]
        cap = source.limit or DEFAULT_ITEM_CAP
        items: List[NormalizedItem] = []
        last_error: Optional[str] = None
        strategies: List[str] = []

        for url in source.all_urls():
            if len(items) >= cap:
                break
            logger.info("Scraping: %s (%s)", source.name, url)
            response = self.fetcher.fetch(url)
            if response is None:
                last_error = self.fetcher.last_error or "empty response"
                logger.warning("Scrape failed for %s (%s): %s", source.name, url, last_error)
                continue
            base_url = source.base_url or profile.base_url or _origin(url)
            soup = BeautifulSoup(response.text, "lxml")
            strategy, cards = run_cascade(soup, build_strategies(profile))
            if strategy:
                logger.debug("%s: %s cards via %s", source.name, len(cards), strategy)
                strategies.append(strategy)
            for card in cards:
                try:
                    item = self._to_item(card, source, profile, base_url, now)
                except RECORD_ERRORS as exc:
                    logger.debug("Skipping malformed card from %s: %s", source.name, exc)
                    continue
                if item is not None:
                    items.append(item)

        items = dedupe_by_key(items, key_fn=lambda item: item.link)[:cap]
        logger.info("Found %s products from %s", len(items), source.name)
        status_error = last_error if not items else None
        extra = {"strategy": ",".join(dict.fromkeys(strategies))} if strategies else None
        return items, source_status(source, items, started=started, now=now, last_error=status_error, extra=extra)

    def _to_item(
        self,
        card: ScrapedCard,
        source: SourceDescriptor,
        profile: ScrapeProfile,
        base_url: str,
        now: datetime,
    ) -> Optional[NormalizedItem]:
        title = clean_title(strip_html(card.title))
        link = absolutize_url(card.href, base_url)
        if not is_valid_product(title, link) or link.rstrip("/") == base_url.rstrip("/"):
            return None
        image = None
        if card.image and not is_placeholder_image(card.image):
            image = normalize_image_url(absolutize_url(card.image, base_url))
        summary = card.summary or profile.summary_template.format(
            title=truncate(title, 150),
            source=source.name,
        )
        return NormalizedItem(
            id=generate_id(link),
            title=truncate(title, TITLE_MAX_LENGTH),
            summary=truncate(strip_html(summary), SUMMARY_MAX_LENGTH),
            link=link,
            image=image,
            source=source.name,
            store_tag=source.store_tag,
            published_at=parse_loose_date(card.date_text, now),
            language=source.language,
            category=source.category,
            price=extract_price(card.price_text),
        )
