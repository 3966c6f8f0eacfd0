"""
Adapter for Shopify storefronts exposing ``/products.json``.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from storefeed.adapters.base import RECORD_ERRORS, source_status
from storefeed.http_client import HttpClient
from storefeed.models import HealthStatus, NormalizedItem, SourceDescriptor
from storefeed.normalize import (
    SUMMARY_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    format_yen,
    generate_id,
    normalize_image_url,
    parse_iso_datetime,
    strip_html,
    truncate,
)

logger = logging.getLogger(__name__)

DEFAULT_PRODUCT_CAP = 12


def variant_price(product: Dict[str, Any]) -> Optional[str]:
    """
    Price of the first variant as ``¥1,234``.

    Heuristic: values of 100 or more are taken as whole yen, smaller values
    are assumed to be expressed in hundreds and scaled by 100. This mirrors
    how the shops we read tend to publish prices; it is not a Shopify rule.
    """
    variants = product.get("variants") or []
    if not variants or not isinstance(variants[0], dict):
        return None
    raw = variants[0].get("price")
    try:
        amount = float(str(raw).replace(",", ""))
    except (TypeError, ValueError):
        return None
    if amount <= 0:
        return None
    if amount < 100:
        amount *= 100
    return format_yen(amount)


class ShopifyAdapter:
    name = "shopify"

    def __init__(self, user_agent: str, timeout: float = 20) -> None:
        self.http = HttpClient(timeout=timeout, user_agent=user_agent)

    def fetch(self, source: SourceDescriptor, *, now: datetime) -> Tuple[List[NormalizedItem], HealthStatus]:
        started = time.time()
        if not source.url:
            return [], source_status(source, [], started=started, now=now, last_error="missing url")

        logger.info("Fetching Shopify products: %s (%s)", source.name, source.url)
        payload = self.http.get(source.url, params=source.params or None)
        if not isinstance(payload, dict) or not isinstance(payload.get("products"), list):
            error = self.http.last_error or "unexpected payload"
            logger.warning("Shopify fetch failed for %s: %s", source.name, error)
            return [], source_status(source, [], started=started, now=now, last_error=error)

        products = [p for p in payload["products"] if isinstance(p, dict)]
        products.sort(key=lambda p: parse_iso_datetime(p.get("created_at")) or now, reverse=True)
        base_url = (source.base_url or _origin(source.url)).rstrip("/")

        items: List[NormalizedItem] = []
        for product in products[: source.limit or DEFAULT_PRODUCT_CAP]:
            try:
                items.append(self._to_item(product, source, base_url, now))
            except RECORD_ERRORS as exc:
                logger.debug("Skipping malformed product from %s: %s", source.name, exc)
        logger.info("Found %s products from %s", len(items), source.name)
        return items, source_status(source, items, started=started, now=now)

    def _to_item(self, product: Dict[str, Any], source: SourceDescriptor, base_url: str, now: datetime) -> NormalizedItem:
        link = f"{base_url}/products/{product['handle']}"
        images = product.get("images") or []
        image = images[0].get("src") if images and isinstance(images[0], dict) else None
        title = strip_html(product["title"])
        return NormalizedItem(
            id=generate_id(link),
            title=truncate(title, TITLE_MAX_LENGTH),
            summary=truncate(strip_html(product.get("body_html") or ""), SUMMARY_MAX_LENGTH),
            link=link,
            image=normalize_image_url(image),
            source=source.name,
            store_tag=source.store_tag,
            published_at=parse_iso_datetime(product.get("created_at") or product.get("published_at")) or now,
            language=source.language,
            category=source.category,
            price=variant_price(product),
        )


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"
