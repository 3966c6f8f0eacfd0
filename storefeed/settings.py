"""
Centralised settings for the storefeed pipeline (env-first, code-light).

Source lists live in YAML (see ``config_loader``); everything tunable per
deployment is read from the environment here.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; StorefeedBot/1.0)"
DEFAULT_DEEPL_URL = "https://api-free.deepl.com/v2/translate"


@dataclass
class StorefeedSettings:
    max_items: int = 50
    sources_path: Path = Path("config") / "sources.yaml"
    output_path: Path = Path("files") / "data" / "news.json"
    deepl_api_key: Optional[str] = None
    deepl_api_url: str = DEFAULT_DEEPL_URL
    translate_source_lang: str = "ja"
    translate_target_lang: str = "en"
    translate_batch_size: int = 10
    translate_batch_delay: float = 1.0
    og_image_fetch_limit: int = 10
    exclude_chains: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    feed_timeout: float = 15.0
    og_image_timeout: float = 5.0
    page_timeout: float = 20.0
    api_timeout: float = 20.0
    translate_timeout: float = 30.0
    request_delay: float = 1.0


def _int_from_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = int(raw)
        return value if value > 0 else default
    except ValueError:
        logger.warning("Invalid int value for %s=%s; using default %s", key, raw, default)
        return default


def _float_from_env(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = float(raw)
        return value if value >= 0 else default
    except ValueError:
        logger.warning("Invalid float value for %s=%s; using default %s", key, raw, default)
        return default


def _bool_from_env(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or str(raw).strip() == "":
        return default
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def _configured_key(value: Optional[str]) -> Optional[str]:
    """Treat blanks and ``YOUR_...`` placeholders as missing."""
    if not value:
        return None
    value = value.strip()
    if not value or "YOUR_" in value or "your_" in value:
        return None
    return value


def load_settings() -> StorefeedSettings:
    sources_env = os.getenv("STOREFEED_SOURCES_PATH")
    output_env = os.getenv("STOREFEED_OUTPUT_PATH")
    defaults = StorefeedSettings()
    return StorefeedSettings(
        max_items=_int_from_env("STOREFEED_MAX_ITEMS", defaults.max_items),
        sources_path=Path(sources_env) if sources_env else defaults.sources_path,
        output_path=Path(output_env) if output_env else defaults.output_path,
        deepl_api_key=_configured_key(os.getenv("DEEPL_API_KEY")),
        deepl_api_url=os.getenv("DEEPL_API_URL") or defaults.deepl_api_url,
        translate_source_lang=os.getenv("STOREFEED_SOURCE_LANG", defaults.translate_source_lang).lower(),
        translate_target_lang=os.getenv("STOREFEED_TARGET_LANG", defaults.translate_target_lang).lower(),
        translate_batch_size=_int_from_env("STOREFEED_TRANSLATE_BATCH_SIZE", defaults.translate_batch_size),
        translate_batch_delay=_float_from_env("STOREFEED_TRANSLATE_DELAY", defaults.translate_batch_delay),
        og_image_fetch_limit=_int_from_env("STOREFEED_OG_IMAGE_LIMIT", defaults.og_image_fetch_limit),
        exclude_chains=_bool_from_env("STOREFEED_EXCLUDE_CHAINS", defaults.exclude_chains),
        user_agent=os.getenv("STOREFEED_USER_AGENT") or defaults.user_agent,
        feed_timeout=_float_from_env("STOREFEED_FEED_TIMEOUT", defaults.feed_timeout),
        og_image_timeout=_float_from_env("STOREFEED_OG_IMAGE_TIMEOUT", defaults.og_image_timeout),
        page_timeout=_float_from_env("STOREFEED_PAGE_TIMEOUT", defaults.page_timeout),
        api_timeout=_float_from_env("STOREFEED_API_TIMEOUT", defaults.api_timeout),
        translate_timeout=_float_from_env("STOREFEED_TRANSLATE_TIMEOUT", defaults.translate_timeout),
        request_delay=_float_from_env("STOREFEED_REQUEST_DELAY", defaults.request_delay),
    )
