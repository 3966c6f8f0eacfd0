"""
Adapters for JSON sources: WordPress REST (``/wp-json/wp/v2/posts``) and
custom event APIs that publish ``name/slug/eventStartsAt/eventEndsAt/status`` records.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from storefeed.adapters.base import RECORD_ERRORS, source_status
from storefeed.adapters.feed import image_from_html
from storefeed.http_client import HttpClient
from storefeed.models import HealthStatus, NormalizedItem, SourceDescriptor
from storefeed.normalize import (
    JST,
    SUMMARY_MAX_LENGTH,
    decode_entities,
    extract_price,
    generate_id,
    normalize_image_url,
    parse_iso_datetime,
    strip_html,
    truncate,
)
from storefeed.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Ad banners and shop logos that sites attach as featured media.
BANNER_IMAGE_DENYLIST = ("banner", "bnr_", "logo", "noimage", "no_image", "/ads/", "/ad_")


def reject_banner(url: Optional[str], denylist: Sequence[str] = BANNER_IMAGE_DENYLIST) -> Optional[str]:
    if not url:
        return None
    lowered = url.lower()
    if any(pattern in lowered for pattern in denylist):
        return None
    return url


def format_event_period(start: datetime, end: datetime) -> str:
    """``Oct 3–Oct 12`` style range (short month + day, en-dash separated), in Japan time."""
    start, end = start.astimezone(JST), end.astimezone(JST)
    return f"{start:%b} {start.day}–{end:%b} {end.day}"


def _rendered(value: Any) -> str:
    if isinstance(value, dict):
        value = value.get("rendered")
    return value if isinstance(value, str) else ""


class _JsonApiAdapter:
    name = "json-api"

    def __init__(
        self,
        user_agent: str,
        timeout: float = 20,
        rate_limit_seconds: float = 1.0,
        banner_denylist: Sequence[str] = BANNER_IMAGE_DENYLIST,
    ) -> None:
        self.http = HttpClient(timeout=timeout, user_agent=user_agent)
        self.rate_limiter = RateLimiter()
        self.rate_limiter.configure(self.name, rate_limit_seconds)
        self.banner_denylist = tuple(banner_denylist)

    def fetch(self, source: SourceDescriptor, *, now: datetime) -> Tuple[List[NormalizedItem], HealthStatus]:
        started = time.time()
        if not source.url:
            return [], source_status(source, [], started=started, now=now, last_error="missing url")

        logger.info("Fetching API: %s (%s)", source.name, source.url)
        items: List[NormalizedItem] = []
        last_error: Optional[str] = None
        for page in range(1, source.pages + 1):
            self.rate_limiter.wait(self.name)
            params: Dict[str, Any] = dict(source.params)
            if source.pages > 1:
                params["page"] = page
            payload = self.http.get(source.url, params=params)
            if payload is None:
                # WordPress answers past-the-end pages with HTTP 400; keep what we have.
                if page == 1:
                    last_error = self.http.last_error or "empty response"
                    logger.warning("API fetch failed for %s: %s", source.name, last_error)
                break
            records = list(self.records(payload))
            if not records:
                break
            for record in records:
                try:
                    item = self.to_item(record, source, now)
                except RECORD_ERRORS as exc:
                    logger.debug("Skipping malformed record from %s: %s", source.name, exc)
                    continue
                if item is not None:
                    items.append(item)
        logger.info("Found %s items from %s", len(items), source.name)
        return items, source_status(source, items, started=started, now=now, last_error=last_error)

    def records(self, payload: Any) -> Iterable[Dict[str, Any]]:
        if isinstance(payload, list):
            return [record for record in payload if isinstance(record, dict)]
        return []

    def to_item(self, record: Dict[str, Any], source: SourceDescriptor, now: datetime) -> Optional[NormalizedItem]:
        raise NotImplementedError


class WordPressAdapter(_JsonApiAdapter):
    name = "wordpress"

    def to_item(self, record: Dict[str, Any], source: SourceDescriptor, now: datetime) -> Optional[NormalizedItem]:
        link = record.get("link") or _rendered(record.get("guid"))
        content_html = _rendered(record.get("content"))
        excerpt_html = _rendered(record.get("excerpt"))
        plain = strip_html(decode_entities(excerpt_html or content_html))
        image = self._featured_image(record) or image_from_html(content_html)
        return NormalizedItem(
            id=generate_id(link),
            title=strip_html(decode_entities(_rendered(record["title"]))),
            summary=truncate(plain, SUMMARY_MAX_LENGTH),
            link=link,
            image=reject_banner(normalize_image_url(image), self.banner_denylist),
            source=source.name,
            store_tag=source.store_tag,
            published_at=_wordpress_date(record) or now,
            language=source.language,
            category=source.category,
            price=extract_price(strip_html(decode_entities(content_html))),
        )

    @staticmethod
    def _featured_image(record: Dict[str, Any]) -> Optional[str]:
        embedded = record.get("_embedded") or {}
        media = embedded.get("wp:featuredmedia") or []
        if media and isinstance(media[0], dict):
            return media[0].get("source_url")
        return None


def _wordpress_date(record: Dict[str, Any]) -> Optional[datetime]:
    gmt = record.get("date_gmt")
    if isinstance(gmt, str) and gmt:
        # date_gmt carries no offset marker
        return parse_iso_datetime(gmt if gmt.endswith("Z") else gmt + "Z")
    return parse_iso_datetime(record.get("date"))


class EventApiAdapter(_JsonApiAdapter):
    name = "event-api"

    def __init__(self, *args: Any, allowed_statuses: Sequence[str] = ("PUBLISHED",), **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.allowed_statuses = {status.upper() for status in allowed_statuses}

    def records(self, payload: Any) -> Iterable[Dict[str, Any]]:
        if isinstance(payload, dict):
            for key in ("events", "data", "items"):
                if isinstance(payload.get(key), list):
                    payload = payload[key]
                    break
        return super().records(payload)

    def to_item(self, record: Dict[str, Any], source: SourceDescriptor, now: datetime) -> Optional[NormalizedItem]:
        status = str(record.get("status") or "").upper()
        if status not in self.allowed_statuses:
            return None
        slug = record.get("slug") or ""
        base = (source.base_url or source.url or "").rstrip("/")
        link = record.get("url") or (f"{base}/{slug}" if slug else "")
        start = parse_iso_datetime(record.get("eventStartsAt"))
        end = parse_iso_datetime(record.get("eventEndsAt"))
        description = strip_html(decode_entities(record.get("description") or ""))
        if start and end:
            description = f"[{format_event_period(start, end)}] {description}".strip()
        image = record.get("imageUrl") or record.get("image")
        if isinstance(image, dict):
            image = image.get("url")
        return NormalizedItem(
            id=generate_id(link),
            title=strip_html(decode_entities(record["name"])),
            summary=truncate(description, SUMMARY_MAX_LENGTH),
            link=link,
            image=reject_banner(normalize_image_url(image), self.banner_denylist),
            source=source.name,
            store_tag=source.store_tag,
            published_at=parse_iso_datetime(record.get("publishedAt")) or start or now,
            language=source.language,
            category=source.category,
            price=extract_price(description),
            event_start=start,
            event_end=end,
        )
