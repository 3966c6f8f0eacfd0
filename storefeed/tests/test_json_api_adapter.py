import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from storefeed.adapters.json_api import EventApiAdapter, WordPressAdapter, format_event_period, reject_banner
from storefeed.models import SourceDescriptor, SourceFamily

EVENTS_PAYLOAD = {
    "events": [
        {
            "name": "Draft event",
            "slug": "draft",
            "status": "DRAFT",
            "eventStartsAt": "2024-10-03T01:00:00Z",
            "eventEndsAt": "2024-10-12T10:00:00Z",
        },
        {
            "name": "Autumn figure fair &#8211; Akihabara",
            "slug": "autumn-fair",
            "status": "PUBLISHED",
            "description": "<p>Limited goods, entry 500円</p>",
            "eventStartsAt": "2024-10-03T01:00:00Z",
            "eventEndsAt": "2024-10-12T10:00:00Z",
            "imageUrl": "https://cdn.example.jp/events/fair.jpg",
        },
    ]
}

WORDPRESS_POSTS = [
    {
        "link": "https://blog.example.jp/2024/05/new-goods/",
        "date": "2024-05-01T19:00:00",
        "date_gmt": "2024-05-01T10:00:00",
        "title": {"rendered": "New goods &#8211; Spring &#038; Summer"},
        "excerpt": {"rendered": "<p>Acrylic stands &amp; badges.</p>"},
        "content": {"rendered": '<p>Price: 1,980円</p><img src="https://blog.example.jp/wp-content/uploads/body.jpg">'},
        "_embedded": {"wp:featuredmedia": [{"source_url": "https://blog.example.jp/wp-content/uploads/top_banner.jpg"}]},
    },
    {
        "guid": {"rendered": "https://blog.example.jp/?p=2"},
        "date": "2024-05-02T09:00:00+09:00",
        "title": {"rendered": "Second post"},
        "content": {"rendered": "<p>Body text</p>"},
    },
    {"link": "https://blog.example.jp/broken/"},
]


class EventApiAdapterTests(unittest.TestCase):
    def setUp(self):
        self.now = datetime(2024, 9, 1, tzinfo=timezone.utc)
        self.adapter = EventApiAdapter("test-agent", rate_limit_seconds=0)
        self.source = SourceDescriptor.from_config(
            {
                "name": "Akiba Events",
                "type": "event_api",
                "url": "https://api.example.jp/events",
                "baseUrl": "https://akiba.example.jp/events/",
                "storeTag": "Akihabara",
            },
            SourceFamily.API,
        )

    @patch("storefeed.adapters.json_api.HttpClient.get", return_value=EVENTS_PAYLOAD)
    def test_only_published_events_are_emitted(self, _mock_get):
        items, status = self.adapter.fetch(self.source, now=self.now)

        self.assertTrue(status.healthy)
        self.assertEqual(len(items), 1)
        item = items[0]
        self.assertEqual(item.title, "Autumn figure fair – Akihabara")
        self.assertEqual(item.link, "https://akiba.example.jp/events/autumn-fair")
        self.assertTrue(item.summary.startswith("[Oct 3–Oct 12] "))
        self.assertIn("Limited goods", item.summary)
        self.assertEqual(item.price, "¥500")
        self.assertEqual(item.store_tag, "Akihabara")
        self.assertEqual(item.category, "events")
        self.assertEqual(item.event_start, datetime(2024, 10, 3, 1, 0, tzinfo=timezone.utc))
        self.assertEqual(item.event_end, datetime(2024, 10, 12, 10, 0, tzinfo=timezone.utc))
        self.assertEqual(item.published_at, item.event_start)
        self.assertEqual(item.image, "https://cdn.example.jp/events/fair.jpg")

    @patch("storefeed.adapters.json_api.HttpClient.get")
    def test_event_missing_name_is_skipped(self, mock_get):
        unnamed = {"slug": "unnamed", "status": "PUBLISHED", "eventStartsAt": "2024-10-05T01:00:00Z"}
        mock_get.return_value = {"events": [unnamed, EVENTS_PAYLOAD["events"][1]]}

        items, status = self.adapter.fetch(self.source, now=self.now)

        self.assertTrue(status.healthy)
        self.assertEqual([item.link for item in items], ["https://akiba.example.jp/events/autumn-fair"])

    @patch("storefeed.adapters.json_api.HttpClient.get", return_value=None)
    def test_failed_request_is_unhealthy(self, _mock_get):
        items, status = self.adapter.fetch(self.source, now=self.now)

        self.assertEqual(items, [])
        self.assertFalse(status.healthy)
        self.assertIsNotNone(status.last_error)

    def test_event_period_uses_japan_calendar_day(self):
        start = datetime(2024, 10, 2, 16, 0, tzinfo=timezone.utc)
        end = datetime(2024, 11, 1, 3, 0, tzinfo=timezone.utc)
        self.assertEqual(format_event_period(start, end), "Oct 3–Nov 1")


class WordPressAdapterTests(unittest.TestCase):
    def setUp(self):
        self.now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        self.adapter = WordPressAdapter("test-agent", rate_limit_seconds=0)

    def _source(self, **overrides):
        raw = {"name": "Shop Blog", "url": "https://blog.example.jp/wp-json/wp/v2/posts", "params": {"per_page": 10}}
        raw.update(overrides)
        return SourceDescriptor.from_config(raw, SourceFamily.API)

    @patch("storefeed.adapters.json_api.HttpClient.get", return_value=WORDPRESS_POSTS)
    def test_maps_rendered_fields(self, mock_get):
        items, status = self.adapter.fetch(self._source(), now=self.now)

        self.assertTrue(status.healthy)
        self.assertEqual(len(items), 2)
        first, second = items
        self.assertEqual(first.title, "New goods – Spring & Summer")
        self.assertEqual(first.summary, "Acrylic stands & badges.")
        self.assertEqual(first.price, "¥1,980")
        # featured media is a banner, and a banner is dropped rather than replaced
        self.assertIsNone(first.image)
        self.assertEqual(first.published_at, datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc))
        self.assertEqual(second.link, "https://blog.example.jp/?p=2")
        self.assertEqual(second.published_at, datetime(2024, 5, 2, 0, 0, tzinfo=timezone.utc))
        mock_get.assert_called_once_with("https://blog.example.jp/wp-json/wp/v2/posts", params={"per_page": 10})

    @patch("storefeed.adapters.json_api.HttpClient.get")
    def test_pagination_stops_at_error_page(self, mock_get):
        mock_get.side_effect = [WORDPRESS_POSTS[:1], None]

        items, status = self.adapter.fetch(self._source(pages=3), now=self.now)

        self.assertEqual(len(items), 1)
        self.assertTrue(status.healthy)
        self.assertEqual(mock_get.call_count, 2)
        self.assertEqual(mock_get.call_args.kwargs["params"], {"per_page": 10, "page": 2})

    def test_content_image_used_when_no_featured_media(self):
        post = dict(WORDPRESS_POSTS[1])
        post["content"] = {"rendered": '<img data-src="//blog.example.jp/uploads/photo.jpg">'}
        with patch("storefeed.adapters.json_api.HttpClient.get", return_value=[post]):
            items, _status = self.adapter.fetch(self._source(), now=self.now)
        self.assertEqual(items[0].image, "https://blog.example.jp/uploads/photo.jpg")


class BannerDenylistTests(unittest.TestCase):
    def test_known_banner_names_are_rejected(self):
        self.assertIsNone(reject_banner("https://x.example.jp/img/bnr_sale.png"))
        self.assertIsNone(reject_banner("https://x.example.jp/img/site-logo.svg"))
        self.assertIsNone(reject_banner(None))

    def test_regular_images_are_kept(self):
        url = "https://x.example.jp/uploads/thread_goods.jpg"
        self.assertEqual(reject_banner(url), url)


if __name__ == "__main__":
    unittest.main()
