"""
Shared helpers for RSS/Atom ingestion.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

import feedparser

from storecrawl.schemas.models import FeedEntry

logger = logging.getLogger(__name__)


class FeedParseError(ValueError):
    """Raised when a payload could not be read as a feed at all."""


def parse_feed_entries(feed_content: bytes) -> List[FeedEntry]:
    # Unsanitized so lazy-load attributes such as data-src survive for image extraction.
    feed = feedparser.parse(feed_content, sanitize_html=False)
    entries = list(getattr(feed, "entries", []) or [])
    if not entries and getattr(feed, "bozo", False):
        raise FeedParseError(str(getattr(feed, "bozo_exception", "malformed feed")))

    items: List[FeedEntry] = []
    for entry in entries:
        items.append(
            FeedEntry(
                title=getattr(entry, "title", ""),
                link=getattr(entry, "link", ""),
                guid=getattr(entry, "id", ""),
                summary=getattr(entry, "summary", None) or getattr(entry, "description", None) or "",
                content_encoded=_first_content(entry),
                categories=_terms(getattr(entry, "tags", None)),
                published_at=_parse_datetime(
                    getattr(entry, "published_parsed", None) or getattr(entry, "updated_parsed", None)
                ),
                enclosure_images=_enclosure_images(entry),
                media_content=_urls(getattr(entry, "media_content", None)),
                media_thumbnails=_urls(getattr(entry, "media_thumbnail", None)),
                itunes_image=_itunes_image(entry),
            )
        )
    return items


def _first_content(entry: Any) -> str:
    for block in getattr(entry, "content", None) or []:
        value = _get(block, "value")
        if value:
            return value
    return ""


def _terms(tags: Any) -> List[str]:
    terms: List[str] = []
    for tag in tags or []:
        term = _get(tag, "term") or _get(tag, "label")
        if isinstance(term, str) and term.strip():
            terms.append(term.strip())
    return terms


def _enclosure_images(entry: Any) -> List[str]:
    found: List[str] = []
    for enclosure in getattr(entry, "enclosures", None) or []:
        href = _get(enclosure, "href") or _get(enclosure, "url")
        mime = _get(enclosure, "type") or ""
        if href and mime.startswith("image"):
            found.append(href)
    return found


def _urls(blocks: Any) -> List[str]:
    return [url for url in (_get(block, "url") for block in blocks or []) if url]


def _itunes_image(entry: Any) -> Optional[str]:
    image = getattr(entry, "image", None)
    if isinstance(image, str):
        return image or None
    return _get(image, "href") if image else None


def _get(obj: Any, key: str) -> Optional[str]:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _parse_datetime(struct_time) -> Optional[datetime]:
    if not struct_time:
        return None
    return datetime(*struct_time[:6], tzinfo=timezone.utc)
