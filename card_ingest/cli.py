"""CLI interface for the card ingestion pipeline."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from card_ingest.adapters import CardSiteAdapter, get_adapter_class
from card_ingest.browser import browser_session
from card_ingest.config import AppConfig, load_config
from card_ingest.discovery import UrlDiscovery
from card_ingest.errors import BrowserLaunchError, ConfigError
from card_ingest.models import RunSummary
from card_ingest.pipeline import LANGUAGES, IngestOptions, IngestPipeline
from card_ingest.sink import ImageFetcher, UpsertSink
from card_ingest.state import ProgressStore
from card_ingest.supabase_store import SupabaseAssetStorage, SupabaseContentStore, create_supabase_client
from card_ingest.throttle import RateLimiter

console = Console()


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # Set up logging
    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )

    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        args.func(args)
    except ConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="card-ingest",
        description="Resumable card catalog ingestion into a content store",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug)",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config.yaml (default: config.yaml)",
    )
    parser.add_argument(
        "--game",
        type=str,
        default=None,
        help="Game to ingest (overrides config default)",
    )

    subparsers = parser.add_subparsers(title="commands", dest="command")

    # ingest
    ingest_parser = subparsers.add_parser("ingest", help="Crawl, normalize and upload cards")
    ingest_parser.add_argument(
        "--series",
        type=str,
        default="all",
        help="Comma-separated series codes (e.g., OP13,ST21) or 'all'",
    )
    ingest_parser.add_argument(
        "--language",
        type=str,
        default="all",
        choices=[*LANGUAGES, "all"],
        help="Language to ingest (default: all)",
    )
    ingest_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Process at most N cards this run",
    )
    ingest_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Discover and report what would be ingested, write nothing",
    )
    ingest_parser.add_argument(
        "--skip-images",
        action="store_true",
        help="Upsert records without uploading images",
    )
    ingest_parser.add_argument(
        "--continue-on-error",
        action="store_true",
        help="Record failed cards and keep going instead of aborting",
    )
    ingest_parser.add_argument(
        "--missing-only",
        action="store_true",
        help="Only re-ingest stored cards whose image is missing",
    )
    ingest_parser.add_argument(
        "--headful",
        action="store_true",
        help="Show the browser window",
    )
    ingest_parser.set_defaults(func=_cmd_ingest)

    # status
    status_parser = subparsers.add_parser("status", help="Show progress of the current run")
    status_parser.set_defaults(func=_cmd_status)

    # clean
    clean_parser = subparsers.add_parser("clean", help="Remove the progress file")
    clean_parser.set_defaults(func=_cmd_clean)

    # series
    series_parser = subparsers.add_parser("series", help="List the series catalog")
    series_parser.set_defaults(func=_cmd_series)

    return parser


def _load_app_config(args: argparse.Namespace) -> AppConfig:
    """Load config, applying CLI overrides."""
    game = getattr(args, "game", None)
    config = load_config(args.config, game=game)
    return config


def _make_adapter(config: AppConfig) -> CardSiteAdapter:
    try:
        cls = get_adapter_class(config.game, config.adapter)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
    return cls()


def _options_from_args(args: argparse.Namespace) -> IngestOptions:
    series = None
    if args.series and args.series.lower() != "all":
        series = [s.strip().upper() for s in args.series.split(",") if s.strip()]
    languages = LANGUAGES if args.language == "all" else (args.language,)
    if args.limit is not None and args.limit < 0:
        raise ConfigError("--limit must be >= 0")
    return IngestOptions(
        series=series,
        languages=languages,
        limit=args.limit,
        dry_run=args.dry_run,
        skip_images=args.skip_images,
        continue_on_error=args.continue_on_error,
        missing_only=args.missing_only,
    )


# ------------------------------------------------------------------
# Command handlers
# ------------------------------------------------------------------


def _cmd_ingest(args: argparse.Namespace) -> None:
    config = _load_app_config(args)
    if args.headful:
        config.browser.headless = False
    options = _options_from_args(args)
    console.print(f"[bold]Game: {config.game}[/bold] (source: {config.adapter})")

    try:
        summary = asyncio.run(_run_ingest(config, options))
    except BrowserLaunchError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)

    _print_summary(summary, dry_run=options.dry_run)
    if summary.aborted:
        sys.exit(1)


async def _run_ingest(config: AppConfig, options: IngestOptions) -> RunSummary:
    adapter = _make_adapter(config)
    progress = ProgressStore(config.state.progress_file)
    discovery = UrlDiscovery(adapter, config.delays, max_pages=config.max_pages)

    sink = None
    if not options.dry_run or options.missing_only:
        client = create_supabase_client(config.storage)
        sink = UpsertSink(
            SupabaseContentStore(client, config.storage.table),
            SupabaseAssetStorage(client, config.storage.bucket),
            ImageFetcher(config.image, limiter=RateLimiter(config.delays.between_uploads)),
            conflict_key=config.storage.conflict_key,
            upload_limiter=RateLimiter(config.delays.between_uploads),
        )

    pipeline = IngestPipeline(adapter, progress, discovery, config.delays, sink=sink)
    try:
        async with browser_session(config.browser, config.delays) as page:
            return await pipeline.run(page, options)
    finally:
        if sink is not None:
            await sink.close()


def _print_summary(summary: RunSummary, dry_run: bool = False) -> None:
    table = Table(title="Dry run" if dry_run else "Run summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Planned", str(summary.planned))
    if not dry_run:
        table.add_row("Processed", str(summary.processed))
        table.add_row("Success", str(summary.success))
        table.add_row("Errors", str(summary.errors))
        table.add_row("Success rate", f"{summary.success_rate:.1f}%")
        table.add_row("Images uploaded", str(summary.uploads))
        table.add_row("Partitions done", str(summary.partitions_done))
    table.add_row("Partitions skipped", str(summary.partitions_skipped))
    table.add_row("Items skipped", str(summary.skipped))
    console.print()
    console.print(table)

    if summary.aborted:
        console.print("\n[bold red]Run aborted; re-run to resume[/bold red]")
    elif summary.errors:
        console.print(
            f"\n[yellow]{summary.errors} card(s) failed; "
            "re-run to retry them[/yellow]"
        )
    elif not dry_run:
        console.print("\n[bold green]Ingestion complete![/bold green]")


def _cmd_status(args: argparse.Namespace) -> None:
    config = _load_app_config(args)
    store = ProgressStore(config.state.progress_file)
    summary = store.summary()

    console.print(f"\n[bold]Ingestion Status ({config.game})[/bold]\n")
    if not summary["exists"]:
        console.print(f"No run in progress ({store.path} not found)")
        return

    table = Table(title="Overview")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Run", summary["run_id"])
    table.add_row("Started", summary["started_at"])
    table.add_row("Last update", summary["updated_at"])
    table.add_row("Current partition", summary["current_partition"] or "-")
    table.add_row("Total", str(summary["total"]))
    table.add_row("Processed", str(summary["processed"]))
    table.add_row("Success", str(summary["success"]))
    table.add_row("Errors", str(summary["errors"]))
    table.add_row("Remaining", str(summary["remaining"]))
    console.print(table)

    if summary["partitions"]:
        console.print()
        parts_table = Table(title="Per-Partition Details")
        parts_table.add_column("Partition", style="cyan")
        parts_table.add_column("Success", justify="right", style="green")
        parts_table.add_column("Errors", justify="right", style="red")
        parts_table.add_column("Skipped", justify="right")

        for name, info in summary["partitions"].items():
            parts_table.add_row(
                name,
                str(info["success"]),
                str(info["errors"]),
                str(info["skipped"]),
            )
        console.print(parts_table)


def _cmd_clean(args: argparse.Namespace) -> None:
    config = _load_app_config(args)
    progress_file = Path(config.state.progress_file)

    if progress_file.exists():
        ProgressStore(str(progress_file)).clear()
        console.print(f"Removed progress file: {progress_file}")
    else:
        console.print(f"Progress file not found: {progress_file}")

    console.print("[green]Clean complete[/green]")


def _cmd_series(args: argparse.Namespace) -> None:
    config = _load_app_config(args)
    adapter = _make_adapter(config)

    table = Table(title=f"Series ({config.game})")
    table.add_column("Code", style="cyan")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Cards", justify="right")
    for language in LANGUAGES:
        table.add_column(language.upper(), justify="center")

    for series in adapter.series_catalog():
        table.add_row(
            series.code,
            series.name,
            series.series_type,
            str(series.card_count) if series.card_count else "?",
            *("[green]yes[/green]" if series.available_in(lang) else "[dim]-[/dim]" for lang in LANGUAGES),
        )
    console.print(table)
