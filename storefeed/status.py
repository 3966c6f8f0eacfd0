"""
Status/health helpers for a finished run; the CLI logs this payload at the end of ``storefeed run``.
"""
from __future__ import annotations

from typing import Any, Dict

from storefeed.models import HealthStatus, PipelineResult
from storefeed.settings import StorefeedSettings


def _health_to_dict(status: HealthStatus) -> Dict[str, Any]:
    return {
        "name": status.name,
        "kind": status.kind,
        "healthy": status.healthy,
        "last_error": status.last_error,
        "last_success": status.last_success.isoformat() if status.last_success else None,
        "items_last_fetch": status.items_last_fetch,
        "latency_ms": round(status.latency_ms, 1) if status.latency_ms is not None else None,
        "extra": status.extra,
    }


def build_status(result: PipelineResult, settings: StorefeedSettings) -> Dict[str, Any]:
    health = [_health_to_dict(entry) for entry in result.health]
    return {
        "generated_at": result.generated_at.isoformat(),
        "pipeline": {
            "health": health,
            "source_count": len(health),
            "healthy_count": sum(1 for entry in health if entry["healthy"]),
            "item_count": len(result.items),
            "translated_count": sum(1 for item in result.items if item.translated),
        },
        "config": {
            "sources_path": str(settings.sources_path),
            "output_path": str(settings.output_path),
            "max_items": settings.max_items,
            "translation_enabled": bool(settings.deepl_api_key),
        },
    }
