"""
Translation stage: rewrites Japanese titles/summaries through DeepL, batch by batch,
keeping the original text whenever the backend cannot help.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import List, Optional, Protocol, Sequence

from storefeed.http_client import HttpClient
from storefeed.models import NormalizedItem
from storefeed.normalize import SUMMARY_MAX_LENGTH, truncate
from storefeed.rate_limiter import RateLimiter
from storefeed.settings import DEFAULT_DEEPL_URL

logger = logging.getLogger(__name__)


class TranslationError(RuntimeError):
    pass


class TranslationBackend(Protocol):
    def translate(self, texts: Sequence[str], source_lang: str, target_lang: str) -> List[str]:
        ...


class DeepLBackend:
    """DeepL REST backend; one request per batch, ``text`` repeated per string."""

    def __init__(self, api_key: str, api_url: str = DEFAULT_DEEPL_URL, timeout: float = 30, user_agent: Optional[str] = None) -> None:
        self.api_key = api_key
        self.api_url = api_url
        # Failed batches fall back to the original text instead of being retried.
        self.http = HttpClient(timeout=timeout, max_retries=0, user_agent=user_agent)

    def translate(self, texts: Sequence[str], source_lang: str, target_lang: str) -> List[str]:
        if not texts:
            return []
        form = [("source_lang", source_lang.upper()), ("target_lang", target_lang.upper())]
        form.extend(("text", text) for text in texts)
        payload = self.http.post_form(
            self.api_url,
            form,
            headers={"Authorization": f"DeepL-Auth-Key {self.api_key}"},
        )
        if not isinstance(payload, dict) or not isinstance(payload.get("translations"), list):
            raise TranslationError(self.http.last_error or "unexpected DeepL response")
        translations = payload["translations"]
        if len(translations) != len(texts):
            raise TranslationError(f"DeepL returned {len(translations)} translations for {len(texts)} texts")
        return [_text_of(t) for t in translations]


def _text_of(translation) -> str:
    text = translation.get("text") if isinstance(translation, dict) else None
    return text if isinstance(text, str) else ""


class Translator:
    def __init__(
        self,
        backend: Optional[TranslationBackend],
        *,
        source_lang: str = "ja",
        target_lang: str = "en",
        batch_size: int = 10,
        batch_delay: float = 1.0,
    ) -> None:
        self.backend = backend
        self.source_lang = source_lang
        self.target_lang = target_lang
        self.batch_size = max(1, batch_size)
        self.rate_limiter = RateLimiter()
        self.rate_limiter.configure("translate", batch_delay)

    def needs_translation(self, item: NormalizedItem) -> bool:
        return item.language == self.source_lang and not item.translated

    def translate_items(self, items: Sequence[NormalizedItem]) -> List[NormalizedItem]:
        items = list(items)
        if self.backend is None:
            logger.warning("DEEPL_API_KEY not set. %s items will not be translated.", self.source_lang)
            return items

        pending = [index for index, item in enumerate(items) if self.needs_translation(item)]
        if not pending:
            logger.info("No %s items to translate.", self.source_lang)
            return items

        logger.info("Translating %s %s items...", len(pending), self.source_lang)
        result = list(items)
        translated_count = 0
        for offset in range(0, len(pending), self.batch_size):
            batch = pending[offset: offset + self.batch_size]
            self.rate_limiter.wait("translate")
            texts: List[str] = []
            for index in batch:
                texts.extend((items[index].title, items[index].summary))
            try:
                translations = self.backend.translate(texts, self.source_lang, self.target_lang)
            except TranslationError as exc:
                logger.error("Translation batch %s failed, keeping original text: %s", offset // self.batch_size + 1, exc)
                continue
            if len(translations) != len(texts):
                logger.error(
                    "Translation batch %s returned %s texts for %s, keeping original text",
                    offset // self.batch_size + 1,
                    len(translations),
                    len(texts),
                )
                continue
            for position, index in enumerate(batch):
                title = _stripped(translations[position * 2])
                summary = _stripped(translations[position * 2 + 1])
                translated = self._translated_copy(items[index], title, summary)
                if translated is not None:
                    result[index] = translated
                    translated_count += 1
        logger.info("Translation complete: %s of %s items translated.", translated_count, len(pending))
        return result

    def _translated_copy(self, item: NormalizedItem, title: str, summary: str) -> Optional[NormalizedItem]:
        if not title:
            logger.debug("Empty translation for %s; keeping original", item.link)
            return None
        return dataclasses.replace(
            item,
            title=title,
            summary=truncate(summary, SUMMARY_MAX_LENGTH) if summary else item.summary,
            original_title=item.title,
            translated=True,
            language=self.target_lang,
        )


def _stripped(value) -> str:
    return value.strip() if isinstance(value, str) else ""
