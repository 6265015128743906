"""Core ingestion orchestrator: discovery, parsing, upload and progress.

A run has two phases. Planning walks every partition (series x language),
discovers item URLs, parses them and drops items the progress log already
holds. Processing then visits each remaining item page, resolves its image
and attributes, writes through the sink and records the outcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from card_ingest.adapters import CardSiteAdapter
from card_ingest.discovery import IndexPage, UrlDiscovery
from card_ingest.errors import ConfigError, NavigationError, PartitionAborted, UploadError
from card_ingest.models import CardKey, CardRecord, ItemOutcome, ParsedCard, Partition, RunSummary, SeriesConfig
from card_ingest.rarities import normalize_rarity
from card_ingest.sink import UpsertSink
from card_ingest.sorting import card_sort_key, sort_by_number
from card_ingest.state import ProgressStore
from card_ingest.throttle import DelayPolicy

logger = logging.getLogger(__name__)
console = Console()

LANGUAGES: Tuple[str, ...] = ("fr", "en", "jp")


class ItemState(str, Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    PARSING = "parsing"
    UPLOADING = "uploading"
    RECORDING = "recording"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class IngestOptions:
    series: Optional[List[str]] = None  # None = every active series
    languages: Sequence[str] = LANGUAGES
    limit: Optional[int] = None
    dry_run: bool = False
    skip_images: bool = False
    continue_on_error: bool = False
    missing_only: bool = False


@dataclass
class WorkItem:
    parsed: ParsedCard
    url: str
    number: str  # storage number, print suffix included
    key: str


@dataclass
class PartitionPlan:
    series: SeriesConfig
    partition: Partition
    discovered: int = 0
    items: List[WorkItem] = field(default_factory=list)
    already_done: int = 0


def compress_ranges(numbers: Iterable[str]) -> str:
    """Render card numbers compactly: "001-005, 007, 010-ALT"."""
    ordered = sorted(set(numbers), key=card_sort_key)
    parts: List[str] = []
    run: List[str] = []

    def flush() -> None:
        if not run:
            return
        parts.append(run[0] if len(run) == 1 else f"{run[0]}-{run[-1]}")
        run.clear()

    for number in ordered:
        if not number.isdigit():
            flush()
            parts.append(number)
            continue
        if run and int(number) != int(run[-1]) + 1:
            flush()
        run.append(number)
    flush()
    return ", ".join(parts)


class IngestPipeline:
    """Orchestrates one ingestion run over a set of partitions."""

    def __init__(
        self,
        adapter: CardSiteAdapter,
        progress: ProgressStore,
        discovery: UrlDiscovery,
        policy: DelayPolicy,
        sink: Optional[UpsertSink] = None,
    ) -> None:
        self._adapter = adapter
        self._progress = progress
        self._discovery = discovery
        self._policy = policy
        self._sink = sink

    def plan_partitions(
        self,
        series_codes: Optional[Sequence[str]],
        languages: Sequence[str],
    ) -> List[Tuple[SeriesConfig, Partition]]:
        """Resolve series x language pairs, skipping unpublished languages."""
        catalog = self._adapter.series_catalog()
        if series_codes:
            wanted = [c.upper() for c in series_codes]
            by_code = {s.code: s for s in catalog}
            unknown = [c for c in wanted if c not in by_code]
            if unknown:
                raise ConfigError(f"Unknown series: {', '.join(unknown)}")
            selected = [by_code[c] for c in wanted]
        else:
            selected = [s for s in catalog if not s.skip]

        pairs = []
        for series in selected:
            for language in languages:
                if not series.available_in(language):
                    logger.debug("%s not published in %s", series.code, language)
                    continue
                pairs.append((series, Partition(series.code, language)))
        return pairs

    async def run(self, page: IndexPage, options: IngestOptions) -> RunSummary:
        summary = RunSummary()
        if options.missing_only and self._sink is None:
            raise ConfigError("--missing-only needs a content store")
        if not options.dry_run and self._sink is None:
            raise ConfigError("A sink is required unless running dry")

        pairs = self.plan_partitions(options.series, options.languages)
        console.print(f"\n[bold]Discovering {len(pairs)} partition(s)...[/bold]")
        plans: List[PartitionPlan] = []
        for index, (series, partition) in enumerate(pairs):
            if index:
                await page.pause(self._policy.between_partitions)
            plan = await self._plan(page, series, partition, options, summary)
            if plan is not None:
                plans.append(plan)

        summary.planned = sum(len(p.items) for p in plans)
        self._apply_limit(plans, options.limit)

        if options.dry_run:
            self._print_dry_run(plans)
            return summary

        self._progress.begin(total=summary.planned + sum(p.already_done for p in plans))
        console.print(f"\n[bold]Ingesting {sum(len(p.items) for p in plans)} card(s)...[/bold]")
        try:
            for index, plan in enumerate(p for p in plans if p.items):
                if index:
                    await page.pause(self._policy.between_partitions)
                await self._ingest_partition(page, plan, options, summary)
        except PartitionAborted as exc:
            summary.aborted = True
            logger.error("%s", exc)
            console.print(f"[red]Aborted: {exc}[/red]")

        self._finish(summary)
        return summary

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    async def _plan(
        self,
        page: IndexPage,
        series: SeriesConfig,
        partition: Partition,
        options: IngestOptions,
        summary: RunSummary,
    ) -> Optional[PartitionPlan]:
        self._transition(partition, ItemState.IDLE, ItemState.DISCOVERING)
        targets = None
        if options.missing_only:
            targets = await self._sink.missing_images(partition)  # type: ignore[union-attr]
            if not targets:
                console.print(f"  {partition}: nothing missing")
                summary.partitions_skipped += 1
                return None

        index_url = self._adapter.index_url(series, partition.language)
        if index_url is None:
            summary.partitions_skipped += 1
            return None

        result = await self._discovery.discover(page, partition, index_url, targets)
        if not result:
            console.print(f"  [dim]{partition}: no items (not available in this language)[/dim]")
            self._transition(partition, ItemState.DISCOVERING, ItemState.DONE)
            summary.partitions_skipped += 1
            return None

        plan = PartitionPlan(series=series, partition=partition, discovered=len(result.urls))
        items: List[WorkItem] = []
        for number, url in result.urls.items():
            parsed = self._adapter.parse_item(url, series.code, partition.language)
            if parsed is None:
                logger.warning("%s: unrecognized item URL %s", partition, url)
                self._transition(partition, ItemState.PARSING, ItemState.ABORTED)
                summary.skipped += 1
                continue
            if parsed.reprint:
                logger.debug("%s: skipping reprint %s", partition, parsed.public_code)
                summary.skipped += 1
                continue
            key = str(CardKey(series.code, number, partition.language))
            if self._progress.is_done(key):
                plan.already_done += 1
                continue
            items.append(WorkItem(parsed=parsed, url=url, number=number, key=key))

        plan.items = sort_by_number(
            items,
            number=lambda w: w.number,
            rarity=lambda w: normalize_rarity(w.parsed.rarity_raw, game=self._adapter.game),
        )
        console.print(
            f"  {partition}: {plan.discovered} discovered, {len(plan.items)} pending"
            + (f", {plan.already_done} already done" if plan.already_done else "")
        )
        return plan

    @staticmethod
    def _apply_limit(plans: List[PartitionPlan], limit: Optional[int]) -> None:
        if limit is None:
            return
        remaining = max(0, limit)
        for plan in plans:
            plan.items = plan.items[:remaining]
            remaining -= len(plan.items)

    def _print_dry_run(self, plans: List[PartitionPlan]) -> None:
        console.print("\n[bold]Dry run: nothing will be written[/bold]")
        for plan in plans:
            numbers = [w.number for w in plan.items]
            console.print(
                f"  {plan.partition}: {len(numbers)} to ingest"
                + (f" ({compress_ranges(numbers)})" if numbers else "")
            )

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def _ingest_partition(
        self,
        page: IndexPage,
        plan: PartitionPlan,
        options: IngestOptions,
        summary: RunSummary,
    ) -> None:
        partition = plan.partition
        self._progress.set_partition(str(partition))
        console.print(f"\n[bold cyan]{plan.series.code}[/bold cyan] {plan.series.name} ({partition.language})")

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            console=console,
        ) as bar:
            task = bar.add_task(str(partition), total=len(plan.items))
            for index, item in enumerate(plan.items):
                if index:
                    await page.pause(self._policy.between_items)
                await self._ingest_item(page, partition, item, options, summary)
                bar.advance(task)

        summary.partitions_done += 1
        self._transition(partition, ItemState.RECORDING, ItemState.DONE)

    async def _ingest_item(
        self,
        page: IndexPage,
        partition: Partition,
        item: WorkItem,
        options: IngestOptions,
        summary: RunSummary,
    ) -> None:
        state = ItemState.PARSING
        try:
            record = await self._enrich(page, partition, item)
            state = self._transition(item.key, state, ItemState.UPLOADING)
            await self._write(record, options)
        except Exception as exc:
            self._transition(item.key, state, ItemState.ABORTED)
            summary.processed += 1
            summary.errors += 1
            if isinstance(exc, (NavigationError, UploadError)):
                reason = str(exc)
                logger.warning("%s failed: %s", item.key, reason)
            else:
                reason = f"{type(exc).__name__}: {exc}"
                logger.exception("%s failed unexpectedly", item.key)
            self._progress.record(item.key, ItemOutcome.ERROR, str(partition), error=reason)
            if not options.continue_on_error:
                raise PartitionAborted(str(partition), exc) from exc
            return

        state = self._transition(item.key, state, ItemState.RECORDING)
        self._progress.record(item.key, ItemOutcome.SUCCESS, str(partition))
        summary.processed += 1
        summary.success += 1
        self._transition(item.key, state, ItemState.DONE)

    async def _enrich(self, page: IndexPage, partition: Partition, item: WorkItem) -> CardRecord:
        await page.goto(item.url)
        html = await page.content()
        image_url, attributes = self._adapter.enrich(html, item.parsed, partition.language)
        if image_url is None and item.parsed.fallback_image_url:
            logger.debug("%s: using deterministic image URL", item.key)
            image_url = item.parsed.fallback_image_url
        record = self._adapter.build_record(item.parsed, partition.language, image_url, attributes)
        if record.image_missing:
            logger.warning("%s: no image found", item.key)
        return record

    async def _write(self, record: CardRecord, options: IngestOptions) -> None:
        sink = self._sink
        if sink is None:
            raise ConfigError("A sink is required to write records")
        if options.skip_images:
            record.image_url = None
        elif record.image_url:
            record.image_url = await sink.put_image(record, record.image_url)
        await sink.put_record(record)

    def _finish(self, summary: RunSummary) -> None:
        if self._sink is not None:
            summary.uploads = self._sink.uploads
        progress = self._progress.progress
        if summary.clean and (progress is None or progress.errors == 0):
            self._progress.clear()
            logger.info("Run complete, progress file removed")
        else:
            console.print(f"[yellow]Progress kept in {self._progress.path} for resume[/yellow]")

    @staticmethod
    def _transition(subject: object, old: ItemState, new: ItemState) -> ItemState:
        logger.debug("%s: %s -> %s", subject, old.value, new.value)
        return new
