"""
Final stage: one entry per id, newest first, capped.
"""
from __future__ import annotations

import logging
from typing import Iterable, List

from storecrawl.pipelines.dedupe import dedupe_by_key

from storefeed.models import NormalizedItem

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 50


def finalize(items: Iterable[NormalizedItem], max_items: int = DEFAULT_MAX_ITEMS) -> List[NormalizedItem]:
    unique = dedupe_by_key(items, key_fn=lambda item: item.id)
    # list.sort is stable, so equal timestamps keep their collection order.
    unique.sort(key=lambda item: item.published_at, reverse=True)
    final = unique[: max(0, max_items)]
    logger.info("Finalized %s items (cap %s)", len(final), max_items)
    return final
