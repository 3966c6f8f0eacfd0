"""
Utilities for extracting metadata from OpenGraph/Twitter-card tags and JSON-LD blocks.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Optional, Union

from bs4 import BeautifulSoup
from pydantic import ValidationError

from storecrawl.schemas.models import ScrapedCard

logger = logging.getLogger(__name__)

SHARE_IMAGE_SELECTORS = (
    'meta[property="og:image"]',
    'meta[property="og:image:url"]',
    'meta[name="twitter:image"]',
    'meta[name="twitter:image:src"]',
)


def _soup(document: Union[str, bytes, BeautifulSoup]) -> BeautifulSoup:
    if isinstance(document, BeautifulSoup):
        return document
    return BeautifulSoup(document, "lxml")


def parse_share_image(document: Union[str, bytes, BeautifulSoup]) -> Optional[str]:
    soup = _soup(document)
    for selector in SHARE_IMAGE_SELECTORS:
        tag = soup.select_one(selector)
        if tag and tag.has_attr("content") and tag["content"].strip():
            return tag["content"].strip()
    return None


def iter_jsonld(document: Union[str, bytes, BeautifulSoup]) -> Iterable[dict]:
    soup = _soup(document)
    for tag in soup.select('script[type="application/ld+json"]'):
        try:
            payload = json.loads(tag.string or "{}")
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict) and isinstance(payload.get("@graph"), list):
            payload = payload["@graph"]
        if isinstance(payload, list):
            candidates = [item for item in payload if isinstance(item, dict)]
        else:
            candidates = [payload] if isinstance(payload, dict) else []
        yield from candidates


def parse_item_list(document: Union[str, bytes, BeautifulSoup]) -> List[ScrapedCard]:
    """Read every ``ItemList`` entry embedded as JSON-LD."""
    cards: List[ScrapedCard] = []
    for candidate in iter_jsonld(document):
        if not _is_type(candidate, "ItemList"):
            continue
        for element in candidate.get("itemListElement") or []:
            if not isinstance(element, dict):
                continue
            item = element.get("item") if isinstance(element.get("item"), dict) else element
            href = item.get("url") or item.get("@id") or element.get("url") or ""
            name = item.get("name") or element.get("name") or ""
            if not href or not name:
                continue
            try:
                card = ScrapedCard(
                    title=str(name),
                    href=str(href),
                    image=_image_url(item.get("image") or element.get("image")),
                    date_text=_scalar(item.get("datePublished") or item.get("releaseDate") or item.get("startDate")),
                    price_text=_offer_price(item.get("offers")),
                    summary=item.get("description") if isinstance(item.get("description"), str) else None,
                )
            except ValidationError as exc:
                logger.debug("Skipping malformed ItemList entry %s: %s", href, exc)
                continue
            cards.append(card)
    return cards


def _is_type(candidate: dict, expected: str) -> bool:
    kind = candidate.get("@type")
    if isinstance(kind, list):
        return expected in kind
    return kind == expected


def _image_url(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value or None
    if isinstance(value, list) and value:
        return _image_url(value[0])
    if isinstance(value, dict):
        return _image_url(value.get("url") or value.get("contentUrl"))
    return None


def _offer_price(offers: Any) -> Optional[str]:
    if isinstance(offers, list) and offers:
        offers = offers[0]
    if not isinstance(offers, dict):
        return None
    price = offers.get("price") or offers.get("lowPrice")
    if price in (None, ""):
        return None
    currency = offers.get("priceCurrency") or "JPY"
    if currency == "JPY":
        return f"¥{price}"
    return f"{currency} {price}"


def _scalar(value: Any) -> Optional[str]:
    # JSON-LD dates are sometimes published as bare numbers such as 20240301.
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int, float)):
        return str(value)
    return None
