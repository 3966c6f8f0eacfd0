"""
Snapshot document helpers: ``{"lastUpdated", "count", "items"}``.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Union

from storefeed.models import PipelineResult

logger = logging.getLogger(__name__)

# Older snapshots and hand-made fixtures used these container keys.
ITEM_CONTAINER_KEYS = ("items", "articles", "news")


def build_payload(result: PipelineResult) -> Dict[str, Any]:
    items = [item.to_dict() for item in result.items]
    return {
        "lastUpdated": result.generated_at.isoformat(),
        "count": len(items),
        "items": items,
    }


def write_payload(path: Union[str, Path], payload: Dict[str, Any]) -> int:
    """Write ``payload`` atomically and return the number of bytes written."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    data = json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")
    tmp_path = target.with_name(target.name + ".tmp")
    tmp_path.write_bytes(data)
    os.replace(tmp_path, target)
    logger.info("Saved %s items to %s (%.1f KB)", payload.get("count", 0), target, len(data) / 1024)
    return len(data)


def read_snapshot(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Items of an existing snapshot; an absent or unreadable file reads as empty."""
    snapshot = Path(path)
    if not snapshot.exists():
        return []
    try:
        blob = json.loads(snapshot.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Cannot read snapshot %s: %s", snapshot, exc)
        return []

    if isinstance(blob, list):
        records = blob
    elif isinstance(blob, dict):
        records = next((blob[key] for key in ITEM_CONTAINER_KEYS if isinstance(blob.get(key), list)), [])
    else:
        records = []
    return [record for record in records if isinstance(record, dict)]
