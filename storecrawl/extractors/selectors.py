"""
Selector-cascade helpers: each strategy turns a parsed page into raw cards,
and the first strategy that yields anything wins.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Tuple
from urllib.parse import unquote, urlsplit

from bs4 import BeautifulSoup
from bs4.element import Tag

from storecrawl.pipelines.dedupe import dedupe_by_key
from storecrawl.schemas.models import ScrapedCard

logger = logging.getLogger(__name__)

Strategy = Callable[[BeautifulSoup], List[ScrapedCard]]

# Lazy-load attributes first; many shops keep a spinner in src until JS runs.
IMAGE_ATTRIBUTES = ("data-original", "data-src", "data-lazy", "data-lazy-src", "src")


def image_candidates(img: Tag) -> List[str]:
    values = []
    for attr in IMAGE_ATTRIBUTES:
        value = img.get(attr)
        if isinstance(value, str) and value.strip():
            values.append(value.strip())
    return values


def first_image_src(element: Tag, reject: Optional[Callable[[str], bool]] = None) -> Optional[str]:
    for img in element.find_all("img"):
        for candidate in image_candidates(img):
            if reject and reject(candidate):
                continue
            return candidate
    return None


def _text(element: Optional[Tag]) -> str:
    if element is None:
        return ""
    return element.get_text(" ", strip=True)


def _image_attr(element: Tag, attr: str) -> str:
    img = element.find("img")
    if img is not None and isinstance(img.get(attr), str):
        return img[attr].strip()
    return ""


def _attr(element: Tag, attr: str) -> str:
    value = element.get(attr)
    return value.strip() if isinstance(value, str) else ""


def href_title(href: str) -> str:
    """
    Readable title from a link path for cards that carry nothing else:
    ``/news/spring-collab`` becomes ``spring collab`` and ``/news/42`` becomes
    ``news 42``.
    """
    segments = [unquote(part) for part in urlsplit(href).path.split("/") if part]
    if not segments:
        return ""
    last = segments[-1].rsplit(".", 1)[0] or segments[-1]
    if last.isdigit() and len(segments) > 1:
        last = f"{segments[-2]} {last}"
    return " ".join(last.replace("-", " ").replace("_", " ").split())


def select_cards(
    soup: BeautifulSoup,
    container_selector: str,
    *,
    title_selectors: Sequence[str] = (),
    date_selectors: Sequence[str] = (),
    price_selectors: Sequence[str] = (),
    reject_image: Optional[Callable[[str], bool]] = None,
) -> List[ScrapedCard]:
    cards: List[ScrapedCard] = []
    for element in soup.select(container_selector):
        title_el = element.select_one(", ".join(title_selectors)) if title_selectors else None
        first_anchor = element if element.name == "a" else element.find("a")
        anchor = title_el if title_el is not None and title_el.name == "a" else first_anchor
        raw_title = _text(title_el) or _text(first_anchor) or _image_attr(element, "alt")
        href = ""
        if anchor is not None and isinstance(anchor.get("href"), str):
            href = anchor["href"]
        cards.append(
            ScrapedCard(
                title=raw_title,
                href=href,
                image=first_image_src(element, reject_image),
                date_text=_text(element.select_one(", ".join(date_selectors))) if date_selectors else None,
                price_text=_text(element.select_one(", ".join(price_selectors))) if price_selectors else None,
            )
        )
    return dedupe_by_key([card for card in cards if card.href], key_fn=lambda card: card.href)


def anchor_cards(
    soup: BeautifulSoup,
    link_patterns: Sequence[str],
    *,
    reject_image: Optional[Callable[[str], bool]] = None,
) -> List[ScrapedCard]:
    """Fallback: anchors pointing at an article-like path that wrap an image."""
    cards: List[ScrapedCard] = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        if not any(pattern in href for pattern in link_patterns):
            continue
        if anchor.find("img") is None:
            continue
        cards.append(
            ScrapedCard(
                title=(
                    _text(anchor)
                    or _image_attr(anchor, "alt")
                    or _attr(anchor, "title")
                    or _image_attr(anchor, "title")
                    or _attr(anchor, "aria-label")
                    or href_title(href)
                ),
                href=href,
                image=first_image_src(anchor, reject_image),
            )
        )
    return dedupe_by_key(cards, key_fn=lambda card: card.href)


def run_cascade(soup: BeautifulSoup, strategies: Sequence[Tuple[str, Strategy]]) -> Tuple[Optional[str], List[ScrapedCard]]:
    for name, strategy in strategies:
        cards = strategy(soup)
        if cards:
            logger.debug("Selector strategy %s matched %s cards", name, len(cards))
            return name, cards
    return None, []
