"""
Reusable HTTP fetching utilities with polite defaults (per-domain delay, retries, size cap).
"""
from __future__ import annotations

import logging
import random
import threading
import time
from typing import Dict, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml;q=0.9, */*;q=0.5"


class HttpFetcher:
    """
    Thin wrapper over requests.Session supporting polite throttling and bounded downloads.

    ``fetch`` never raises: it returns ``None`` once every attempt has failed and keeps
    the reason in ``last_error`` so callers can report it per source.
    """

    def __init__(
        self,
        user_agent: str,
        min_delay: float = 1.0,
        max_retries: int = 2,
        timeout: float = 20,
        accept: str = HTML_ACCEPT,
        accept_language: str = "ja,en-US;q=0.8,en;q=0.6",
    ) -> None:
        self.session = requests.Session()
        self.session.headers.update(
            {
                "User-Agent": user_agent,
                "Accept": accept,
                "Accept-Language": accept_language,
            }
        )
        self.min_delay = min_delay
        self.max_retries = max(1, max_retries)
        self.timeout = timeout
        self.last_error: Optional[str] = None
        self._last_hit: Dict[str, float] = {}
        self._lock = threading.RLock()

    def fetch(
        self,
        url: str,
        *,
        timeout: Optional[float] = None,
        stream: bool = False,
    ) -> Optional[requests.Response]:
        """
        Fetch a URL politely. Returns None if the request ultimately fails.

        Args:
            url: URL to fetch.
            timeout: Per-call override of the session timeout, in seconds.
            stream: Leave the body unread so the caller can consume it in chunks.
        """
        self.last_error = None
        for attempt in range(self.max_retries):
            self._respect_delay(url)
            try:
                response = self.session.get(
                    url,
                    timeout=timeout or self.timeout,
                    stream=stream,
                )
                if response.status_code >= 400:
                    response.close()
                    raise requests.HTTPError(f"HTTP {response.status_code}")
                return response
            except requests.RequestException as exc:
                self.last_error = str(exc)
                logger.debug("Fetch attempt %s for %s failed: %s", attempt + 1, url, exc)
                if attempt + 1 < self.max_retries:
                    sleep_for = min(30, self.min_delay * (2 ** attempt))
                    time.sleep(sleep_for + random.random())
        return None

    def fetch_partial(
        self,
        url: str,
        max_bytes: int,
        *,
        timeout: Optional[float] = None,
    ) -> Optional[Tuple[requests.Response, bytes]]:
        """
        Fetch at most ``max_bytes`` of a body, for pages where only the head matters.

        Returns the closed response (status, headers, encoding) together with the
        bytes that were read, or None if the request failed.
        """
        response = self.fetch(url, timeout=timeout, stream=True)
        if response is None:
            return None
        try:
            return response, read_capped(response, max_bytes)
        except requests.RequestException as exc:
            self.last_error = str(exc)
            logger.debug("Reading body of %s failed: %s", url, exc)
            return None
        finally:
            response.close()

    def _respect_delay(self, url: str) -> None:
        domain = self._extract_domain(url)
        with self._lock:
            last = self._last_hit.get(domain)
            now = time.time()
            if last and now - last < self.min_delay:
                time.sleep(self.min_delay - (now - last))
            self._last_hit[domain] = time.time()

    @staticmethod
    def _extract_domain(url: str) -> str:
        return url.split("/")[2] if "://" in url else url


def read_capped(response: requests.Response, max_bytes: int) -> bytes:
    chunks = []
    received = 0
    for chunk in response.iter_content(chunk_size=16384):
        if not chunk:
            continue
        chunks.append(chunk)
        received += len(chunk)
        if received >= max_bytes:
            break
    return b"".join(chunks)[:max_bytes]
