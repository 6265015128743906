"""Paginated URL discovery over a series index page.

The index lists a fixed number of items per page in ascending number order,
so a set of target numbers maps to a window of pages. Only pages inside the
window are scraped; earlier pages are skipped through pagination clicks.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Protocol, Tuple

from card_ingest.adapters import CardSiteAdapter
from card_ingest.models import Partition
from card_ingest.throttle import DelayPolicy

logger = logging.getLogger(__name__)

_LEADING_DIGITS = re.compile(r"^\d+")


class IndexPage(Protocol):
    """The subset of BrowserPage that discovery drives."""

    async def goto(self, url: str) -> None: ...

    async def content(self) -> str: ...

    async def click(self, selector: str) -> bool: ...

    async def pause(self, ms: int) -> None: ...


@dataclass
class DiscoveryResult:
    urls: Dict[str, str] = field(default_factory=dict)  # storage number -> absolute URL
    pages_visited: List[int] = field(default_factory=list)
    total_pages: int = 0

    def __bool__(self) -> bool:
        return bool(self.urls)


def _number_value(number: str) -> Optional[int]:
    match = _LEADING_DIGITS.match(number)
    return int(match.group()) if match else None


def page_window(
    targets: Optional[Iterable[str]],
    items_per_page: int,
    total_pages: int,
) -> Tuple[int, int]:
    """Inclusive (start, end) page range that can contain every target.

    One page of slack is added at the end because alternate prints sit
    after the regular numbering.
    """
    total_pages = max(1, total_pages)
    values = [v for v in (_number_value(t) for t in targets or ()) if v is not None]
    if not values:
        return 1, total_pages
    start = max(1, math.ceil(min(values) / items_per_page))
    end = min(total_pages, math.ceil(max(values) / items_per_page) + 1)
    return min(start, end), end


class UrlDiscovery:
    """Discovers item URLs for one partition at a time, caching results."""

    def __init__(
        self,
        adapter: CardSiteAdapter,
        policy: DelayPolicy,
        max_pages: int = 20,
    ) -> None:
        self._adapter = adapter
        self._policy = policy
        self._max_pages = max_pages
        self._cache: Dict[Tuple[str, Optional[FrozenSet[str]]], DiscoveryResult] = {}

    async def discover(
        self,
        page: IndexPage,
        partition: Partition,
        index_url: str,
        targets: Optional[Iterable[str]] = None,
    ) -> DiscoveryResult:
        wanted = frozenset(targets) if targets is not None else None
        cache_key = (str(partition), wanted)
        if cache_key in self._cache:
            logger.debug("%s: discovery cache hit", partition)
            return self._cache[cache_key]

        if wanted is not None and not wanted:
            result = DiscoveryResult()
        else:
            result = await self._crawl(page, partition, index_url, wanted)
        self._cache[cache_key] = result
        return result

    async def _crawl(
        self,
        page: IndexPage,
        partition: Partition,
        index_url: str,
        wanted: Optional[FrozenSet[str]],
    ) -> DiscoveryResult:
        result = DiscoveryResult()
        try:
            await page.goto(index_url)
            html = await page.content()
            result.total_pages = self._adapter.max_page(html)
            start, end = page_window(wanted, self._adapter.items_per_page, result.total_pages)
            logger.info(
                "%s: %d page(s), scanning %d..%d", partition, result.total_pages, start, end
            )

            current = 1
            if start > 1:
                current = await self._skip_to(page, start)
                if current != start:
                    logger.warning("%s: could not reach page %d", partition, start)
                    return result
                html = await page.content()

            while True:
                added = self._collect(html, partition, wanted, result)
                result.pages_visited.append(current)
                logger.debug("%s: page %d -> %d new item(s)", partition, current, added)

                # Pagination can grow as the page finishes rendering.
                result.total_pages = max(result.total_pages, self._adapter.max_page(html))
                if wanted is None:
                    end = result.total_pages
                else:
                    _, end = page_window(wanted, self._adapter.items_per_page, result.total_pages)

                if wanted is not None and wanted <= result.urls.keys():
                    break
                if wanted is None and added == 0:
                    break
                if current >= end or len(result.pages_visited) >= self._max_pages:
                    break

                await page.pause(self._policy.between_pages)
                if not await page.click(self._adapter.page_selector(current + 1)):
                    logger.debug("%s: no control for page %d", partition, current + 1)
                    break
                current += 1
                html = await page.content()
        except Exception as exc:
            logger.warning(
                "%s: discovery stopped with %d item(s): %s", partition, len(result.urls), exc
            )

        logger.info("%s: discovered %d item URL(s)", partition, len(result.urls))
        return result

    async def _skip_to(self, page: IndexPage, start: int) -> int:
        """Reach page ``start`` without scraping the pages before it."""
        if await page.click(self._adapter.page_selector(start)):
            return start
        current = 1
        while current < start:
            await page.pause(self._policy.between_pages)
            if not await page.click(self._adapter.page_selector(current + 1)):
                break
            current += 1
        return current

    def _collect(
        self,
        html: str,
        partition: Partition,
        wanted: Optional[FrozenSet[str]],
        result: DiscoveryResult,
    ) -> int:
        added = 0
        for href in self._adapter.item_links(html):
            number = self._adapter.item_number(href, partition.series_code)
            if number is None or number in result.urls:
                continue
            if wanted is not None and number not in wanted:
                continue
            result.urls[number] = self._adapter.item_url(href)
            added += 1
        return added
