"""
JSON HTTP helper with retries + polite headers reused by the API adapters and the translator.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from storefeed.security import redact_secrets

logger = logging.getLogger(__name__)

JsonPayload = Union[Dict[str, Any], List[Any]]


class HttpClient:
    """
    ``get``/``post_form`` return the decoded JSON body or ``None``; the reason for
    a ``None`` is kept in ``last_error``. Only idempotent methods are retried.
    """

    def __init__(self, timeout: float = 20, max_retries: int = 2, user_agent: Optional[str] = None):
        self.timeout = timeout
        self.last_error: Optional[str] = None
        self.session = requests.Session()
        retry = Retry(
            total=max_retries,
            backoff_factor=0.6,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.session.headers.update(
            {
                "User-Agent": user_agent or "StorefeedBot/1.0",
                "Accept": "application/json",
            }
        )

    def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Optional[JsonPayload]:
        return self._request("GET", url, params=params)

    def post_form(
        self,
        url: str,
        data: Sequence[Tuple[str, str]],
        headers: Optional[Dict[str, str]] = None,
    ) -> Optional[JsonPayload]:
        return self._request("POST", url, data=list(data), headers=headers)

    def _request(self, method: str, url: str, **kwargs: Any) -> Optional[JsonPayload]:
        self.last_error = None
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            self.last_error = redact_secrets(str(exc))
            logger.error("HTTP %s exception %s", method, self.last_error)
            return None
        if resp.status_code != 200:
            self.last_error = f"HTTP {resp.status_code}"
            logger.warning("HTTP %s failed %s %s", method, resp.status_code, redact_secrets(resp.text[:200]))
            return None
        try:
            return resp.json()
        except ValueError as exc:
            self.last_error = f"invalid JSON: {exc}"
            logger.warning("HTTP %s %s returned a non-JSON body", method, redact_secrets(url))
            return None
