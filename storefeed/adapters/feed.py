"""
Adapter for RSS/Atom sources, tuned for Japanese WordPress feeds that ship the
full article HTML in ``content:encoded``.
"""
from __future__ import annotations

import dataclasses
import logging
import re
import time
from datetime import datetime
from typing import List, Optional, Tuple, Union

from bs4 import BeautifulSoup

from storecrawl.extractors.og_jsonld import parse_share_image
from storecrawl.extractors.selectors import image_candidates
from storecrawl.infra.http import FEED_ACCEPT, HTML_ACCEPT, HttpFetcher
from storecrawl.ingesters.rss_base import FeedParseError, parse_feed_entries
from storecrawl.schemas.models import FeedEntry

from storefeed.adapters.base import RECORD_ERRORS, source_status
from storefeed.models import HealthStatus, NormalizedItem, SourceDescriptor
from storefeed.normalize import (
    SUMMARY_MAX_LENGTH,
    extract_price,
    generate_id,
    normalize_image_url,
    strip_html,
    truncate,
)

logger = logging.getLogger(__name__)

OG_IMAGE_MAX_BYTES = 100 * 1024
_IMG_SRC_RE = re.compile(r"""<img[^>]+src=["']([^"']+)["']""", re.IGNORECASE)


def image_from_html(html: str) -> Optional[str]:
    """First image of a rich-content block, preferring lazy-load attributes."""
    if not html:
        return None
    img = BeautifulSoup(html, "lxml").find("img")
    if img is not None:
        candidates = image_candidates(img)
        if candidates:
            return candidates[0]
    match = _IMG_SRC_RE.search(html)
    return match.group(1) if match else None


def extract_entry_image(entry: FeedEntry) -> Optional[str]:
    for candidates in (entry.enclosure_images, entry.media_content, entry.media_thumbnails):
        if candidates:
            return candidates[0]
    if entry.itunes_image:
        return entry.itunes_image
    from_content = image_from_html(entry.content_encoded)
    if from_content:
        return from_content
    match = _IMG_SRC_RE.search(entry.summary or "")
    return match.group(1) if match else None


def matches_filter_tags(categories: List[str], filter_tags: List[str]) -> bool:
    if not filter_tags:
        return True
    lowered = [category.lower() for category in categories]
    return any(tag.lower() in category for tag in filter_tags for category in lowered)


class FeedAdapter:
    name = "rss"

    def __init__(
        self,
        user_agent: str,
        feed_timeout: float = 15,
        og_image_timeout: float = 5,
        og_image_fetch_limit: int = 10,
        min_delay: float = 1.0,
    ) -> None:
        self.fetcher = HttpFetcher(user_agent=user_agent, min_delay=min_delay, timeout=feed_timeout, accept=FEED_ACCEPT)
        self.page_fetcher = HttpFetcher(
            user_agent=user_agent,
            min_delay=min_delay,
            max_retries=1,
            timeout=og_image_timeout,
            accept=HTML_ACCEPT,
        )
        self.og_image_fetch_limit = og_image_fetch_limit

    def fetch(self, source: SourceDescriptor, *, now: datetime) -> Tuple[List[NormalizedItem], HealthStatus]:
        started = time.time()
        if not source.url:
            return [], source_status(source, [], started=started, now=now, last_error="missing url")

        logger.info("Fetching RSS: %s (%s)", source.name, source.url)
        response = self.fetcher.fetch(source.url)
        if response is None:
            error = self.fetcher.last_error or "empty response"
            logger.warning("RSS fetch failed for %s: %s", source.name, error)
            return [], source_status(source, [], started=started, now=now, last_error=error)
        try:
            entries = parse_feed_entries(response.content)
        except FeedParseError as exc:
            logger.warning("RSS parse failed for %s: %s", source.name, exc)
            return [], source_status(source, [], started=started, now=now, last_error=str(exc))

        items: List[NormalizedItem] = []
        for entry in entries:
            if not matches_filter_tags(entry.categories, source.filter_tags):
                continue
            try:
                items.append(self._to_item(entry, source, now))
            except RECORD_ERRORS as exc:
                logger.debug("Skipping malformed entry from %s: %s", source.name, exc)
        logger.info("Found %s items from %s", len(items), source.name)

        missing = sum(1 for item in items if not item.image)
        if missing and self.og_image_fetch_limit > 0:
            logger.info(
                "%s items from %s lack images, fetching share images (up to %s)",
                missing,
                source.name,
                self.og_image_fetch_limit,
            )
            items = self.fill_missing_images(items)
        return items, source_status(source, items, started=started, now=now)

    def _to_item(self, entry: FeedEntry, source: SourceDescriptor, now: datetime) -> NormalizedItem:
        link = entry.link or entry.guid
        rich = entry.content_encoded or entry.summary
        plain = strip_html(rich)
        return NormalizedItem(
            id=generate_id(link),
            title=strip_html(entry.title),
            summary=truncate(plain, SUMMARY_MAX_LENGTH),
            link=link,
            image=normalize_image_url(extract_entry_image(entry)),
            source=source.name,
            store_tag=source.store_tag,
            published_at=entry.published_at or now,
            language=source.language,
            category=source.category,
            price=extract_price(plain),
        )

    def fill_missing_images(self, items: List[NormalizedItem]) -> List[NormalizedItem]:
        fetched = 0
        filled: List[NormalizedItem] = []
        for item in items:
            if item.image or not item.link or fetched >= self.og_image_fetch_limit:
                filled.append(item)
                continue
            fetched += 1
            image = self._fetch_share_image(item.link)
            filled.append(dataclasses.replace(item, image=image) if image else item)
        if fetched:
            logger.info(
                "Fetched share images for %s articles (%s now have images)",
                fetched,
                sum(1 for item in filled if item.image),
            )
        return filled

    def _fetch_share_image(self, url: str) -> Optional[str]:
        fetched = self.page_fetcher.fetch_partial(url, OG_IMAGE_MAX_BYTES)
        if fetched is None:
            return None
        response, body = fetched
        try:
            return normalize_image_url(parse_share_image(_decode_head(response, body)))
        except (TypeError, ValueError) as exc:
            logger.debug("Share image lookup failed for %s: %s", url, exc)
            return None


def _decode_head(response, body: bytes) -> Union[str, bytes]:
    # Without a declared charset the raw bytes go to the parser, which reads <meta charset>.
    content_type = response.headers.get("Content-Type") or ""
    if response.encoding and "charset" in content_type.lower():
        return body.decode(response.encoding, errors="replace")
    return body
