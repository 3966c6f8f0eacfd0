"""
Command line entry point: ``storefeed run`` builds the snapshot, ``storefeed sources`` lists the source file.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

from storefeed.config_loader import ConfigError, load_sources_config
from storefeed.models import NormalizedItem
from storefeed.output import build_payload, read_snapshot, write_payload
from storefeed.pipeline import StorefeedPipeline
from storefeed.settings import load_settings
from storefeed.status import build_status

logger = logging.getLogger(__name__)

PREVIEW_LIMIT = 15


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def _preview_line(index: int, item: NormalizedItem) -> str:
    lines = [
        f"{index}. [{item.source}] {item.title}",
        f"   store: {item.store_tag or '-'} | category: {item.category} | language: {item.language}",
        f"   link: {item.link}",
        f"   published: {item.published_at.isoformat()}",
    ]
    if item.price:
        lines.append(f"   price: {item.price}")
    lines.append(f"   image: {'yes' if item.image else 'no'}")
    return "\n".join(lines)


@click.group()
def cli():
    load_dotenv(os.getenv("STOREFEED_DOTENV", ".env"))


@cli.command()
@click.option("--dry-run", is_flag=True, help="Print a preview instead of writing the snapshot.")
@click.option("--sources", "sources_path", type=click.Path(path_type=Path), default=None, help="Source list (YAML).")
@click.option("--output", "output_path", type=click.Path(path_type=Path), default=None, help="Snapshot path.")
@click.option("--max-items", type=click.IntRange(min=1), default=None, help="Cap on the number of items kept.")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging.")
def run(dry_run: bool, sources_path: Optional[Path], output_path: Optional[Path], max_items: Optional[int], verbose: bool):
    """Fetch every source and write the aggregated snapshot."""
    _configure_logging(verbose)
    settings = load_settings()
    if sources_path:
        settings = replace(settings, sources_path=sources_path)
    if output_path:
        settings = replace(settings, output_path=output_path)
    if max_items:
        settings = replace(settings, max_items=max_items)

    try:
        sources = load_sources_config(settings.sources_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc))
    if not len(sources):
        logger.warning("No sources configured in %s", settings.sources_path)

    result = StorefeedPipeline(settings).run(sources)
    status = build_status(result, settings)
    logger.info(
        "Run finished: %s items, %s/%s sources healthy",
        status["pipeline"]["item_count"],
        status["pipeline"]["healthy_count"],
        status["pipeline"]["source_count"],
    )
    for entry in status["pipeline"]["health"]:
        if not entry["healthy"]:
            logger.warning("Source %s unhealthy: %s", entry["name"], entry["last_error"])

    if dry_run:
        click.echo(f"Dry run: {len(result.items)} items (showing up to {PREVIEW_LIMIT})")
        for index, item in enumerate(result.items[:PREVIEW_LIMIT], start=1):
            click.echo(_preview_line(index, item))
        return

    if not result.items and read_snapshot(settings.output_path):
        logger.warning("No items collected; keeping the existing snapshot at %s", settings.output_path)
        return
    write_payload(settings.output_path, build_payload(result))


@cli.command()
@click.option("--sources", "sources_path", type=click.Path(path_type=Path), default=None, help="Source list (YAML).")
@click.option("--as-json", is_flag=True, help="Emit one JSON object per source.")
def sources(sources_path: Optional[Path], as_json: bool):
    """List the configured sources and the adapter kind each resolves to."""
    settings = load_settings()
    try:
        config = load_sources_config(sources_path or settings.sources_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc))
    for source in config.all_sources():
        kind = source.source_kind
        resolved = kind.value if kind else "unknown"
        if as_json:
            click.echo(
                json.dumps(
                    {
                        "name": source.name,
                        "family": source.family.value,
                        "type": source.kind,
                        "resolved": resolved,
                        "category": source.category,
                        "language": source.language,
                        "urls": source.all_urls(),
                    },
                    ensure_ascii=False,
                )
            )
        else:
            click.echo(f"{source.family.value:<7} {resolved:<11} {source.name} ({', '.join(source.all_urls()) or '-'})")


if __name__ == "__main__":  # pragma: no cover
    cli()
