import json
import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from storefeed.adapters.html_scrape import SCRAPE_PROFILES, HtmlScrapeAdapter, build_strategies
from storefeed.models import SourceDescriptor, SourceFamily, SourceKind
from storefeed.normalize import extract_price

FALLBACK_PAGE = """
<html><body>
  <div class="wrap">
    <a href="/news/42"><img src="https://cdn.example.jp/news/42.jpg" alt="Spring collab announced"></a>
    <a href="/about">About us</a>
    <a href="/news/43">Text-only link</a>
  </div>
</body></html>
"""

GOODSMILE_PAGE = """
<html><body>
  <div class="hitItem">
    <span class="hitTtl"><a href="/en/product/100/nendoroid-miku.html">Nendoroid Hatsune Miku</a></span>
    <img src="/images/loading.gif" data-original="//images.goodsmile.info//cgm/images/product/100.jpg">
    <span class="hitDate">2024.03.05</span>
    <span class="hitPrice">5,800円</span>
  </div>
  <div class="hitItem">
    <span class="hitTtl"><a href="/en/product/101/x.html">12345</a></span>
  </div>
  <div class="hitItem">
    <span class="hitTtl"><a href="https://www.goodsmile.info/">Good Smile Company</a></span>
  </div>
</body></html>
"""

JSONLD = {
    "@context": "https://schema.org",
    "@type": "ItemList",
    "itemListElement": [
        {
            "@type": "ListItem",
            "position": 1,
            "item": {
                "@type": "Product",
                "name": "アクリルスタンド 限定版",
                "url": "/pn/2001",
                "image": "/images/2001.jpg",
                "releaseDate": "2024年7月20日",
                "offers": {"price": "1650", "priceCurrency": "JPY"},
            },
        }
    ],
}

ANIMATE_PAGE = f"""
<html><head><script type="application/ld+json">{json.dumps(JSONLD, ensure_ascii=False)}</script></head>
<body><ul class="item_list"><li><a href="/pn/9999">Markup card</a></li></ul></body></html>
"""


BARE_IMAGE_PAGE = '<html><body><a href="/news/42"><img src="https://cdn.example.jp/42.jpg"></a></body></html>'

MIXED_JSONLD = {
    "@context": "https://schema.org",
    "@type": "ItemList",
    "itemListElement": [
        {"@type": "ListItem", "item": {"name": "Good item", "url": "/pn/1", "offers": {"price": 990, "priceCurrency": "JPY"}}},
        {"@type": "ListItem", "item": {"name": "Numeric date item", "url": "/pn/2", "datePublished": 20240301}},
        {"@type": "ListItem", "item": {"name": "Odd image item", "url": "/pn/3", "image": {"url": 7}}},
    ],
}

MIXED_JSONLD_PAGE = f"""
<html><head><script type="application/ld+json">{json.dumps(MIXED_JSONLD)}</script></head><body></body></html>
"""


def _response(text: str):
    response = MagicMock()
    response.text = text
    return response


class HtmlScrapeAdapterTests(unittest.TestCase):
    def setUp(self):
        self.now = datetime(2024, 8, 1, tzinfo=timezone.utc)
        self.adapter = HtmlScrapeAdapter(user_agent="test-agent", min_delay=0)

    @patch("storefeed.adapters.html_scrape.HttpFetcher.fetch")
    def test_link_fallback_emits_anchor_with_image(self, mock_fetch):
        mock_fetch.return_value = _response(FALLBACK_PAGE)
        source = SourceDescriptor.from_config(
            {"name": "Example News", "url": "https://www.example.jp/news/"},
            SourceFamily.SCRAPE,
        )

        items, status = self.adapter.fetch(source, now=self.now)

        self.assertTrue(status.healthy)
        self.assertEqual(len(items), 1)
        item = items[0]
        self.assertEqual(item.link, "https://www.example.jp/news/42")
        self.assertEqual(item.title, "Spring collab announced")
        self.assertEqual(item.image, "https://cdn.example.jp/news/42.jpg")
        self.assertEqual(item.summary, "Example News: Spring collab announced")
        self.assertEqual(item.category, "products")
        self.assertEqual(item.published_at, self.now)

    @patch("storefeed.adapters.html_scrape.HttpFetcher.fetch")
    def test_site_profile_cards(self, mock_fetch):
        mock_fetch.return_value = _response(GOODSMILE_PAGE)
        source = SourceDescriptor.from_config(
            {"name": "Good Smile Company", "type": "goodsmile", "url": "https://www.goodsmile.info/en/products/announced"},
            SourceFamily.SCRAPE,
        )

        items, _status = self.adapter.fetch(source, now=self.now)

        self.assertEqual(len(items), 1)
        item = items[0]
        self.assertEqual(item.title, "Nendoroid Hatsune Miku")
        self.assertEqual(item.link, "https://www.goodsmile.info/en/product/100/nendoroid-miku.html")
        self.assertEqual(item.image, "https://images.goodsmile.info/cgm/images/product/100.jpg")
        self.assertEqual(item.price, "¥5,800")
        self.assertEqual(item.published_at, datetime(2024, 3, 4, 15, 0, tzinfo=timezone.utc))
        self.assertEqual(item.summary, "New product announcement from Good Smile Company: Nendoroid Hatsune Miku")

    @patch("storefeed.adapters.html_scrape.HttpFetcher.fetch")
    def test_structured_data_wins_over_markup(self, mock_fetch):
        mock_fetch.return_value = _response(ANIMATE_PAGE)
        source = SourceDescriptor.from_config(
            {"name": "Animate", "type": "animate", "url": "https://www.animate-onlineshop.jp/calendar/", "storeTag": "Animate"},
            SourceFamily.SCRAPE,
        )

        items, _status = self.adapter.fetch(source, now=self.now)

        self.assertEqual([item.link for item in items], ["https://www.animate-onlineshop.jp/pn/2001"])
        item = items[0]
        self.assertEqual(item.image, "https://www.animate-onlineshop.jp/images/2001.jpg")
        self.assertEqual(item.price, "¥1650")
        self.assertEqual(item.store_tag, "Animate")
        self.assertEqual(item.published_at, datetime(2024, 7, 19, 15, 0, tzinfo=timezone.utc))

    @patch("storefeed.adapters.html_scrape.HttpFetcher.fetch")
    def test_cap_stops_before_next_url(self, mock_fetch):
        mock_fetch.return_value = _response(FALLBACK_PAGE)
        source = SourceDescriptor.from_config(
            {
                "name": "Example News",
                "urls": ["https://www.example.jp/news/", "https://www.example.jp/news/page/2"],
                "limit": 1,
            },
            SourceFamily.SCRAPE,
        )

        items, _status = self.adapter.fetch(source, now=self.now)

        self.assertEqual(len(items), 1)
        self.assertEqual(mock_fetch.call_count, 1)

    @patch("storefeed.adapters.html_scrape.HttpFetcher.fetch")
    def test_bare_image_anchor_is_titled_from_link(self, mock_fetch):
        mock_fetch.return_value = _response(BARE_IMAGE_PAGE)
        source = SourceDescriptor.from_config({"name": "Example News", "type": "html", "url": "https://www.example.jp/"}, SourceFamily.SCRAPE)

        items, status = self.adapter.fetch(source, now=self.now)

        self.assertEqual(len(items), 1, f"got {items}")
        self.assertEqual(items[0].link, "https://www.example.jp/news/42")
        self.assertEqual(items[0].title, "news 42")
        self.assertEqual(items[0].image, "https://cdn.example.jp/42.jpg")
        self.assertEqual(status.extra, {"strategy": "link-fallback"})

    @patch("storefeed.adapters.html_scrape.HttpFetcher.fetch")
    def test_malformed_structured_record_is_skipped(self, mock_fetch):
        mock_fetch.return_value = _response(MIXED_JSONLD_PAGE)
        source = SourceDescriptor.from_config(
            {"name": "Animate", "type": "animate", "url": "https://www.animate-onlineshop.jp/calendar/"},
            SourceFamily.SCRAPE,
        )

        items, status = self.adapter.fetch(source, now=self.now)

        self.assertTrue(status.healthy)
        self.assertEqual(status.extra, {"strategy": "jsonld-itemlist"})
        self.assertEqual(
            [item.link for item in items],
            [
                "https://www.animate-onlineshop.jp/pn/1",
                "https://www.animate-onlineshop.jp/pn/2",
                "https://www.animate-onlineshop.jp/pn/3",
            ],
        )
        self.assertEqual(items[0].price, "¥990")
        self.assertEqual(items[1].published_at, datetime(2024, 3, 1, tzinfo=timezone.utc))
        self.assertIsNone(items[2].image)

    @patch("storefeed.adapters.html_scrape.HttpFetcher.fetch")
    def test_card_that_fails_mapping_is_skipped(self, mock_fetch):
        mock_fetch.return_value = _response(MIXED_JSONLD_PAGE)
        source = SourceDescriptor.from_config(
            {"name": "Animate", "type": "animate", "url": "https://www.animate-onlineshop.jp/calendar/"},
            SourceFamily.SCRAPE,
        )
        real_price = extract_price

        def flaky_price(text):
            if text == "¥990":
                raise ValueError("bad price")
            return real_price(text)

        with patch("storefeed.adapters.html_scrape.extract_price", side_effect=flaky_price):
            items, status = self.adapter.fetch(source, now=self.now)

        self.assertTrue(status.healthy)
        self.assertEqual([item.title for item in items], ["Numeric date item", "Odd image item"])

    @patch("storefeed.adapters.html_scrape.HttpFetcher.fetch", return_value=None)
    def test_unreachable_page_is_unhealthy(self, _mock_fetch):
        source = SourceDescriptor.from_config({"name": "Down", "url": "https://down.example.jp/"}, SourceFamily.SCRAPE)

        items, status = self.adapter.fetch(source, now=self.now)

        self.assertEqual(items, [])
        self.assertFalse(status.healthy)

    def test_strategy_order(self):
        names = [name for name, _strategy in build_strategies(SCRAPE_PROFILES[SourceKind.ANIMATE])]
        self.assertEqual(names[0], "jsonld-itemlist")
        self.assertEqual(names[-1], "link-fallback")


if __name__ == "__main__":
    unittest.main()
