"""
Adapter protocol + registry for pluggable upstream source kinds.
"""
from __future__ import annotations

import time
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from storefeed.models import HealthStatus, NormalizedItem, SourceDescriptor, SourceKind

# Raised while mapping one upstream record; the record is skipped and the source continues.
RECORD_ERRORS = (KeyError, TypeError, ValueError, AttributeError, IndexError)


class SourceAdapter(Protocol):
    name: str

    def fetch(self, source: SourceDescriptor, *, now: datetime) -> Tuple[List[NormalizedItem], HealthStatus]:
        ...


class AdapterRegistry:
    """
    Maps every known ``SourceKind`` to the adapter instance that handles it.
    """

    def __init__(self) -> None:
        self._adapters: Dict[SourceKind, SourceAdapter] = {}

    def register(self, kind: SourceKind, adapter: SourceAdapter) -> None:
        if kind in self._adapters:
            raise ValueError(f"Adapter for '{kind.value}' already registered")
        self._adapters[kind] = adapter

    def get(self, kind: SourceKind) -> Optional[SourceAdapter]:
        return self._adapters.get(kind)

    def kinds(self) -> Iterable[SourceKind]:
        return self._adapters.keys()


def source_status(
    source: SourceDescriptor,
    items: List[NormalizedItem],
    *,
    started: float,
    now: datetime,
    last_error: Optional[str] = None,
    extra: Optional[Dict[str, str]] = None,
) -> HealthStatus:
    healthy = bool(items) or last_error is None
    return HealthStatus(
        name=source.name,
        kind=source.kind,
        healthy=healthy,
        last_error=last_error,
        last_success=now if healthy else None,
        items_last_fetch=len(items),
        latency_ms=(time.time() - started) * 1000,
        extra=dict(extra or {}),
    )
