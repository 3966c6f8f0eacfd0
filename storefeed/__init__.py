"""
Public API for the storefeed aggregator.
"""
from __future__ import annotations

from typing import Optional

from storefeed.config_loader import ConfigError, load_sources_config
from storefeed.filters import filter_items
from storefeed.finalize import finalize
from storefeed.models import NormalizedItem, PipelineResult, SourcesConfig
from storefeed.output import build_payload, read_snapshot, write_payload
from storefeed.pipeline import StorefeedPipeline
from storefeed.settings import StorefeedSettings, load_settings
from storefeed.translator import Translator

__all__ = [
    "ConfigError",
    "NormalizedItem",
    "PipelineResult",
    "StorefeedPipeline",
    "Translator",
    "build_payload",
    "filter_items",
    "finalize",
    "read_snapshot",
    "run_pipeline",
    "write_payload",
]


def run_pipeline(sources: Optional[SourcesConfig] = None, settings: Optional[StorefeedSettings] = None) -> PipelineResult:
    """
    Run one aggregation pass. Without arguments the environment settings and
    the source file they point at are used.
    """
    settings = settings or load_settings()
    if sources is None:
        sources = load_sources_config(settings.sources_path)
    return StorefeedPipeline(settings).run(sources)
