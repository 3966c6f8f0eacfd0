import unittest
from datetime import datetime, timedelta, timezone

from storefeed.adapters.base import AdapterRegistry
from storefeed.models import (
    FilterConfig,
    HealthStatus,
    NormalizedItem,
    SourceDescriptor,
    SourceFamily,
    SourceKind,
    SourcesConfig,
)
from storefeed.normalize import generate_id
from storefeed.pipeline import StorefeedPipeline, build_default_registry
from storefeed.settings import StorefeedSettings
from storefeed.translator import Translator

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def make_item(title, link, source="Static", hours_ago=0, language="en", category="news"):
    return NormalizedItem(
        id=generate_id(link),
        title=title,
        summary="",
        link=link,
        source=source,
        published_at=NOW - timedelta(hours=hours_ago),
        language=language,
        category=category,
    )


class _StaticAdapter:
    name = "static"

    def __init__(self, items):
        self._items = items
        self.calls = []

    def fetch(self, source, *, now):
        self.calls.append(source.name)
        return list(self._items), HealthStatus(
            name=source.name,
            healthy=True,
            last_success=now,
            items_last_fetch=len(self._items),
        )


class _BrokenAdapter:
    name = "broken"

    def fetch(self, source, *, now):
        raise RuntimeError("upstream exploded ?api_key=abc123")


def _source(name, kind, family=SourceFamily.RSS):
    return SourceDescriptor.from_config({"name": name, "type": kind, "url": f"https://{name}.example.jp/"}, family)


class PipelineTests(unittest.TestCase):
    def setUp(self):
        self.settings = StorefeedSettings(max_items=50)
        self.translator = Translator(None)

    def _pipeline(self, registry, settings=None):
        return StorefeedPipeline(settings or self.settings, registry=registry, translator=self.translator)

    def test_unknown_type_is_skipped(self):
        registry = AdapterRegistry()
        adapter = _StaticAdapter([make_item("Story", "https://example.jp/1")])
        registry.register(SourceKind.RSS, adapter)
        sources = SourcesConfig(rss=[_source("good", "rss"), _source("weird", "telepathy")])

        with self.assertLogs("storefeed.pipeline", level="WARNING"):
            result = self._pipeline(registry).run(sources, now=NOW)

        self.assertEqual(adapter.calls, ["good"])
        self.assertEqual(len(result.items), 1)
        self.assertEqual([status.name for status in result.health], ["good"])

    def test_failing_adapter_does_not_stop_siblings(self):
        registry = AdapterRegistry()
        registry.register(SourceKind.WORDPRESS, _BrokenAdapter())
        registry.register(SourceKind.RSS, _StaticAdapter([make_item("Story", "https://example.jp/1")]))
        sources = SourcesConfig(
            rss=[_source("feed", "rss")],
            api=[_source("wp", "wordpress", SourceFamily.API)],
        )

        result = self._pipeline(registry).run(sources, now=NOW)

        self.assertEqual([item.title for item in result.items], ["Story"])
        broken = [status for status in result.health if status.name == "wp"][0]
        self.assertFalse(broken.healthy)
        self.assertNotIn("abc123", broken.last_error)

    def test_all_sources_failing_gives_empty_result(self):
        registry = AdapterRegistry()
        registry.register(SourceKind.RSS, _BrokenAdapter())
        sources = SourcesConfig(rss=[_source("a", "rss"), _source("b", "rss")])

        result = self._pipeline(registry).run(sources, now=NOW)

        self.assertEqual(result.items, [])
        self.assertEqual(len(result.health), 2)
        self.assertTrue(all(not status.healthy for status in result.health))

    def test_stages_run_in_order(self):
        registry = AdapterRegistry()
        registry.register(
            SourceKind.RSS,
            _StaticAdapter(
                [
                    make_item("Old news", "https://example.jp/old", hours_ago=5),
                    make_item("old NEWS", "https://example.jp/old-copy", hours_ago=1),
                    make_item("Fresh merch", "https://example.jp/fresh", hours_ago=0),
                    make_item("", "https://example.jp/blank", hours_ago=0),
                    make_item("Lawson campaign", "https://example.jp/chain", hours_ago=2),
                ]
            ),
        )
        sources = SourcesConfig(rss=[_source("feed", "rss")], filters=FilterConfig(exclude_chains=True))
        settings = StorefeedSettings(max_items=2)

        result = self._pipeline(registry, settings).run(sources, now=NOW)

        self.assertEqual([item.link for item in result.items], ["https://example.jp/fresh", "https://example.jp/old"])
        self.assertEqual(result.generated_at, NOW)

    def test_goods_keywords_enable_relevance_filter(self):
        registry = AdapterRegistry()
        registry.register(
            SourceKind.RSS,
            _StaticAdapter(
                [
                    make_item("Box office results", "https://example.jp/1"),
                    make_item("New plush line", "https://example.jp/2"),
                ]
            ),
        )
        sources = SourcesConfig(rss=[_source("feed", "rss")], filters=FilterConfig(goods_keywords=["plush"]))

        result = self._pipeline(registry).run(sources, now=NOW)

        self.assertEqual([item.title for item in result.items], ["New plush line"])


class DefaultRegistryTests(unittest.TestCase):
    def test_every_kind_has_an_adapter(self):
        registry = build_default_registry(StorefeedSettings())
        self.assertEqual(set(registry.kinds()), set(SourceKind))

    def test_duplicate_registration_rejected(self):
        registry = AdapterRegistry()
        registry.register(SourceKind.RSS, _StaticAdapter([]))
        with self.assertRaises(ValueError):
            registry.register(SourceKind.RSS, _StaticAdapter([]))


if __name__ == "__main__":
    unittest.main()
