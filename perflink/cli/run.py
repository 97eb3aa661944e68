# =============================================================================
# perflink/cli/run.py -- Batch job CLI
# =============================================================================
#
# Subcommands:
#
#   resolve   -- resolve and link performers for unlinked products
#   dedup     -- merge duplicate performers and purge invalid data
#   ingest    -- load a crawler JSON-lines dump (lookup rows, alias lists)
#   status    -- print store and cache counts
#   variants  -- print the search variants for a product code (config only)
#
# Usage examples:
#   perflink resolve --limit 200 --asp MGS
#   perflink dedup --dry-run
#   perflink ingest crawl/seesaawiki.jsonl --source seesaawiki
#   perflink status
#   perflink variants FANZA-gvh00802
# =============================================================================

"""Command-line entry point for the perflink batch jobs."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from perflink.config.loader import load_config
from perflink.config.pipeline_config import build_pipeline_config
from perflink.config.settings import Settings
from perflink.main import (
    build_components,
    build_normalizer,
    close_components,
    configure_from_settings,
    initialize_components,
)
from perflink.utils.errors import PerflinkError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="perflink",
        description="Product-code normalization and performer resolution jobs.",
    )
    parser.add_argument("--config", help="Path to config.yaml (default: settings.config_path)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    sub = parser.add_subparsers(dest="command")

    resolve = sub.add_parser("resolve", help="Resolve performers for unlinked products")
    resolve.add_argument("--limit", type=int, default=None, help="Max products this run")
    resolve.add_argument("--asp", default=None, help="Only products from this ASP")

    dedup = sub.add_parser("dedup", help="Merge duplicate performers, purge invalid data")
    dedup.add_argument("--dry-run", action="store_true", help="Report counts without writing")

    ingest = sub.add_parser("ingest", help="Load crawler lookup rows and alias lists")
    ingest.add_argument("file", type=Path, help="JSON-lines file")
    ingest.add_argument("--source", required=True, help="Source name for lines without one")

    sub.add_parser("status", help="Show store and cache counts")

    variants = sub.add_parser("variants", help="Print search variants for a code")
    variants.add_argument("code", help="ASP product code, e.g. FANZA-gvh00802")

    return parser


def _print_report(title: str, payload: dict[str, Any]) -> None:
    print(title)
    for key, value in payload.items():
        if isinstance(value, (dict, list)):
            value = json.dumps(value, ensure_ascii=False)
        print(f"  {key + ':':<28}{value}")


async def _handle_resolve(components: dict[str, Any], args: argparse.Namespace) -> int:
    report = await components["pipeline"].run(limit=args.limit, asp_name=args.asp)
    _print_report("Resolution complete:", report.model_dump())
    return 0


async def _handle_dedup(components: dict[str, Any], args: argparse.Namespace) -> int:
    report = await components["dedup"].run(dry_run=args.dry_run)
    payload = report.model_dump(exclude={"similar_pairs"})
    _print_report("Dedup complete (dry run):" if args.dry_run else "Dedup complete:", payload)
    if report.similar_pairs:
        print("\nSimilar names for review:")
        for pair in report.similar_pairs:
            print(
                f"  {pair.left_id}:{pair.left_name}  ~  "
                f"{pair.right_id}:{pair.right_name}  ({pair.score:.1f})"
            )
    return 0


async def _handle_ingest(components: dict[str, Any], args: argparse.Namespace) -> int:
    if not args.file.exists():
        print(f"Error: file not found: {args.file}", file=sys.stderr)
        return 1
    report = await components["ingest"].ingest_jsonl(args.file, args.source)
    _print_report(f"Ingested {args.file}:", report.model_dump())
    return 0


def _handle_variants(app_settings: Settings, code: str) -> int:
    pipeline_config = build_pipeline_config(load_config(settings=app_settings))
    for variant in build_normalizer(pipeline_config).variants(code):
        print(variant)
    return 0


async def _handle_status(components: dict[str, Any]) -> int:
    stats = await components["performer_store"].stats()
    stats = stats.model_copy(
        update={"cache_entries": await components["lookup_cache"].count_by_source()}
    )
    _print_report("perflink status:", stats.model_dump())
    return 0


async def _dispatch(args: argparse.Namespace, app_settings: Settings) -> int:
    components = build_components(app_settings)
    try:
        await initialize_components(components)
        if args.command == "resolve":
            return await _handle_resolve(components, args)
        if args.command == "dedup":
            return await _handle_dedup(components, args)
        if args.command == "ingest":
            return await _handle_ingest(components, args)
        return await _handle_status(components)
    finally:
        await close_components(components)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    ``variants`` reads the configuration but opens no database; every
    other command builds the full component graph.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    if args.config:
        app_settings = app_settings.model_copy(update={"config_path": args.config})
    configure_from_settings(app_settings, json_output=args.json_logs)

    try:
        if args.command == "variants":
            exit_code = _handle_variants(app_settings, args.code)
        else:
            exit_code = asyncio.run(_dispatch(args, app_settings))
    except PerflinkError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
