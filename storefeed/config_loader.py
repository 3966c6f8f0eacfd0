"""
Load ``config/sources.yaml`` with ``${ENV}`` expansion into a ``SourcesConfig``.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from storefeed.models import FilterConfig, SourceDescriptor, SourceFamily, SourcesConfig

logger = logging.getLogger(__name__)

FAMILY_KEYS = {
    SourceFamily.RSS: ("rss_sources", "rss"),
    SourceFamily.API: ("api_sources", "api"),
    SourceFamily.SCRAPE: ("scrape_sources", "scrape"),
}


class ConfigError(ValueError):
    """The source list exists but cannot be used."""


def load_sources_config(path: Optional[Path] = None) -> SourcesConfig:
    config_path = Path(path) if path else Path("config") / "sources.yaml"
    if not config_path.exists():
        logger.warning("Source list not found at %s", config_path)
        return SourcesConfig()
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read {config_path}: {exc}") from exc
    return parse_sources(_expand_env(data))


def parse_sources(data: Any) -> SourcesConfig:
    if not isinstance(data, dict):
        raise ConfigError("Source list must be a mapping of source families")
    config = SourcesConfig(filters=_parse_filters(data.get("filters")))
    for family, keys in FAMILY_KEYS.items():
        raw_list = _first_present(data, keys)
        if raw_list is None:
            continue
        if not isinstance(raw_list, list):
            raise ConfigError(f"'{keys[0]}' must be a list of source descriptors")
        descriptors: List[SourceDescriptor] = []
        for index, raw in enumerate(raw_list):
            if not isinstance(raw, dict):
                logger.warning("Skipping %s entry #%s: not a mapping", keys[0], index)
                continue
            descriptors.append(SourceDescriptor.from_config(raw, family))
        setattr(config, family.value, descriptors)
    return config


def _first_present(data: Dict[str, Any], keys) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if isinstance(v, (str, int)) and str(v).strip()]


def _parse_filters(raw: Any) -> FilterConfig:
    if not isinstance(raw, dict):
        return FilterConfig()
    return FilterConfig(
        exclude_chains=bool(raw.get("exclude_chains", False)),
        chain_terms=_string_list(raw.get("chain_terms")),
        keep_terms=_string_list(raw.get("keep_terms")),
        goods_keywords=_string_list(raw.get("goods_keywords")),
    )


def _expand_env(data: Any) -> Any:
    def replace(value: Any) -> Any:
        if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
            env_key = value[2:-1]
            return os.getenv(env_key, "")
        if isinstance(value, dict):
            return {k: replace(v) for k, v in value.items()}
        if isinstance(value, list):
            return [replace(item) for item in value]
        return value

    return replace(data)
