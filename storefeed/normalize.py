"""
Pure helpers that turn upstream strings into the normalized item fields.
"""
from __future__ import annotations

import hashlib
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Union
from urllib.parse import urljoin, urlsplit

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

ID_LENGTH = 16
SUMMARY_MAX_LENGTH = 200
TITLE_MAX_LENGTH = 200
ELLIPSIS = "..."

JST = timezone(timedelta(hours=9))

# Entities actually seen in the upstream feeds; not a full HTML5 table.
BASIC_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#039;", "'"),
    ("&#39;", "'"),
    ("&#8211;", "–"),
    ("&#8212;", "—"),
    ("&#8216;", "‘"),
    ("&#8217;", "’"),
    ("&#8220;", "“"),
    ("&#8221;", "”"),
)

REST_ENTITIES = BASIC_ENTITIES + (
    ("&#038;", "&"),
    ("&#38;", "&"),
    ("&#x26;", "&"),
    ("&#x2013;", "–"),
    ("&#x2014;", "—"),
    ("&#x2019;", "’"),
    ("&#x201c;", "“"),
    ("&#x201d;", "”"),
    ("&ndash;", "–"),
    ("&mdash;", "—"),
    ("&lsquo;", "‘"),
    ("&rsquo;", "’"),
    ("&ldquo;", "“"),
    ("&rdquo;", "”"),
    ("&#8230;", "…"),
    ("&hellip;", "…"),
)

_TAG_RE = re.compile(r"<[^>]*>")
_SPACE_RE = re.compile(r"\s+")
_YEN_SUFFIX_RE = re.compile(r"(\d[\d,]*)\s*円")
_YEN_PREFIX_RE = re.compile(r"[¥￥]\s*(\d[\d,]*)")
_JA_DATE_RE = re.compile(r"(\d{4})\s*年\s*(\d{1,2})\s*月\s*(\d{1,2})\s*日")
_DOT_DATE_RE = re.compile(r"(\d{4})\.(\d{1,2})\.(\d{1,2})")

JUNK_TITLES = {"top", "home", "mobile site", "menu", "search", "cart", "login", "sign in", "more", "next", "back"}
PLACEHOLDER_IMAGE_PATTERNS = ("loading", "spacer", "placeholder", "noimage", "no_image", "no-image", "blank.gif", "dummy")


def generate_id(key: Optional[str]) -> str:
    return hashlib.sha256((key or "").encode("utf-8")).hexdigest()[:ID_LENGTH]


def _replace_entities(text: str, table) -> str:
    for entity, char in table:
        text = text.replace(entity, char)
    return text


def strip_html(html: Optional[str]) -> str:
    """Drop tags, decode the common entities, collapse whitespace."""
    if not html:
        return ""
    text = _TAG_RE.sub("", html)
    text = _replace_entities(text, BASIC_ENTITIES)
    return _SPACE_RE.sub(" ", text).strip()


def decode_entities(text: Optional[str]) -> str:
    """Decode the wider entity set WordPress REST emits in ``*.rendered`` fields."""
    if not text:
        return ""
    return _replace_entities(text, REST_ENTITIES)


def truncate(text: Optional[str], max_len: int) -> str:
    if not text or len(text) <= max_len:
        return text or ""
    return text[: max_len - len(ELLIPSIS)].strip() + ELLIPSIS


def normalize_image_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    normalized = url.strip()
    if not normalized:
        return None
    if normalized.startswith("//"):
        normalized = "https:" + normalized
    match = re.match(r"^(https?://)", normalized)
    if match:
        prefix = match.group(1)
        normalized = prefix + re.sub(r"/{2,}", "/", normalized[len(prefix):])
    return normalized


def extract_price(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    match = _YEN_SUFFIX_RE.search(text) or _YEN_PREFIX_RE.search(text)
    if match:
        return "¥" + match.group(1)
    return None


def format_yen(amount: Union[int, float]) -> str:
    return "¥{:,}".format(int(round(amount)))


def clean_title(raw: Optional[str]) -> str:
    if not raw:
        return ""
    title = _SPACE_RE.sub(" ", raw).strip()
    if title.isdigit():
        return ""
    return title


def is_valid_product(title: str, link: str) -> bool:
    if not title or len(title) < 3:
        return False
    if title.lower() in JUNK_TITLES:
        return False
    if not link or "javascript:" in link.lower() or link.endswith("#"):
        return False
    return True


def absolutize_url(href: Optional[str], base_url: str) -> str:
    """Resolve protocol-relative, root-relative and bare-relative links against the source domain."""
    if not href:
        return ""
    href = href.strip()
    if href.startswith(("http://", "https://")):
        return href
    if href.startswith("//"):
        return "https:" + href
    if href.startswith(("javascript:", "mailto:", "tel:")):
        return href
    base = base_url if base_url.endswith("/") else base_url + "/"
    if href.startswith("/"):
        parts = urlsplit(base_url)
        return f"{parts.scheme}://{parts.netloc}{href}"
    return urljoin(base, href)


def is_placeholder_image(url: Optional[str]) -> bool:
    if not url:
        return True
    lowered = url.lower()
    if lowered.startswith("data:"):
        return True
    filename = lowered.rsplit("/", 1)[-1]
    return any(pattern in filename for pattern in PLACEHOLDER_IMAGE_PATTERNS)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return ensure_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
    except ValueError:
        pass
    try:
        return ensure_utc(date_parser.isoparse(value.strip()))
    except (ValueError, OverflowError):
        return None


def parse_loose_date(text: Optional[str], now: datetime) -> datetime:
    """
    Best-effort publication date for scraped cards.

    Supports ``2024年3月5日`` and ``2024.03.05`` (both read as JST calendar days),
    then a generic parse; anything else yields ``now``.
    """
    if not text or not text.strip():
        return now
    for pattern in (_JA_DATE_RE, _DOT_DATE_RE):
        match = pattern.search(text)
        if match:
            year, month, day = (int(part) for part in match.groups())
            try:
                return datetime(year, month, day, tzinfo=JST).astimezone(timezone.utc)
            except ValueError:
                logger.debug("Ignoring impossible calendar date %r", text)
                return now
    try:
        return ensure_utc(date_parser.parse(text.strip()))
    except (ValueError, OverflowError):
        return now
