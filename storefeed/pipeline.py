"""
High-level orchestration: collect from every configured source, then
filter, translate and finalize.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from storefeed.adapters.base import AdapterRegistry
from storefeed.adapters.feed import FeedAdapter
from storefeed.adapters.html_scrape import HtmlScrapeAdapter
from storefeed.adapters.json_api import EventApiAdapter, WordPressAdapter
from storefeed.adapters.shopify import ShopifyAdapter
from storefeed.filters import ChainFilter, filter_items, keep_relevant
from storefeed.finalize import finalize
from storefeed.models import HealthStatus, NormalizedItem, PipelineResult, SourceDescriptor, SourceKind, SourcesConfig
from storefeed.security import redact_secrets
from storefeed.settings import StorefeedSettings
from storefeed.translator import DeepLBackend, Translator

logger = logging.getLogger(__name__)


def build_default_registry(settings: StorefeedSettings) -> AdapterRegistry:
    registry = AdapterRegistry()
    registry.register(
        SourceKind.RSS,
        FeedAdapter(
            user_agent=settings.user_agent,
            feed_timeout=settings.feed_timeout,
            og_image_timeout=settings.og_image_timeout,
            og_image_fetch_limit=settings.og_image_fetch_limit,
            min_delay=settings.request_delay,
        ),
    )
    registry.register(
        SourceKind.WORDPRESS,
        WordPressAdapter(settings.user_agent, timeout=settings.api_timeout, rate_limit_seconds=settings.request_delay),
    )
    registry.register(
        SourceKind.EVENT_API,
        EventApiAdapter(settings.user_agent, timeout=settings.api_timeout, rate_limit_seconds=settings.request_delay),
    )
    scraper = HtmlScrapeAdapter(settings.user_agent, timeout=settings.page_timeout, min_delay=settings.request_delay)
    for kind in (SourceKind.GOODSMILE, SourceKind.KOTOBUKIYA, SourceKind.ANIMATE, SourceKind.HTML):
        registry.register(kind, scraper)
    registry.register(SourceKind.SHOPIFY, ShopifyAdapter(settings.user_agent, timeout=settings.api_timeout))
    return registry


def build_translator(settings: StorefeedSettings) -> Translator:
    backend = None
    if settings.deepl_api_key:
        backend = DeepLBackend(
            settings.deepl_api_key,
            api_url=settings.deepl_api_url,
            timeout=settings.translate_timeout,
            user_agent=settings.user_agent,
        )
    return Translator(
        backend,
        source_lang=settings.translate_source_lang,
        target_lang=settings.translate_target_lang,
        batch_size=settings.translate_batch_size,
        batch_delay=settings.translate_batch_delay,
    )


class StorefeedPipeline:
    def __init__(
        self,
        settings: Optional[StorefeedSettings] = None,
        *,
        registry: Optional[AdapterRegistry] = None,
        translator: Optional[Translator] = None,
    ) -> None:
        self.settings = settings or StorefeedSettings()
        self.registry = registry or build_default_registry(self.settings)
        self.translator = translator or build_translator(self.settings)
        self._health: Dict[str, HealthStatus] = {}

    def collect(
        self,
        sources: Iterable[SourceDescriptor],
        now: datetime,
    ) -> Tuple[List[NormalizedItem], List[HealthStatus]]:
        """Fetch every source in order; one broken source never stops the run."""
        items: List[NormalizedItem] = []
        health: List[HealthStatus] = []
        for source in sources:
            kind = source.source_kind
            adapter = self.registry.get(kind) if kind else None
            if adapter is None:
                logger.warning("Unknown source type '%s' for %s; skipping", source.kind, source.name)
                continue
            try:
                fetched, status = adapter.fetch(source, now=now)
            except Exception as exc:
                error = redact_secrets(str(exc))
                logger.error("Adapter %s failed for %s: %s", getattr(adapter, "name", kind.value), source.name, error)
                fetched, status = [], HealthStatus(name=source.name, kind=source.kind, healthy=False, last_error=error)
            items.extend(fetched)
            health.append(status)
            self._health[status.name] = status
        logger.info("Collected %s items from %s sources", len(items), len(health))
        return items, health

    def run(self, sources: SourcesConfig, now: Optional[datetime] = None) -> PipelineResult:
        now = now or datetime.now(timezone.utc)
        collected, health = self.collect(sources.all_sources(), now)

        filters = sources.filters
        if filters.goods_keywords:
            collected = keep_relevant(collected, filters.goods_keywords)
        chain_filter = None
        if self.settings.exclude_chains or filters.exclude_chains:
            chain_filter = ChainFilter(filters.chain_terms or None, filters.keep_terms or None)
        filtered = filter_items(collected, chain_filter=chain_filter)

        translated = self.translator.translate_items(filtered)
        final = finalize(translated, self.settings.max_items)
        return PipelineResult(items=final, generated_at=now, health=health)

    def get_health(self) -> List[HealthStatus]:
        return list(self._health.values())
