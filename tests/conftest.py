"""Shared fakes: a scripted browser page and in-memory storage."""

import json
import re
from typing import Dict, List, Optional, Set

import pytest

from card_ingest.errors import NavigationError, UploadError
from card_ingest.games.onepiece.adapters.opecards import OpecardsAdapter
from card_ingest.throttle import DelayPolicy

SITE = "https://site.test"
_PAGE_RE = re.compile(r'data-page="(\d+)"')


def index_html(hrefs: List[str], max_page: int) -> str:
    links = "\n".join(f'<a href="{h}"><img src="x.webp"></a>' for h in hrefs)
    pages = "".join(
        f'<li class="page-item"><span class="page-link" data-page="{n}">{n}</span></li>'
        for n in range(1, max_page + 1)
    )
    return f'<html><body><div class="cards">{links}</div><ul class="pagination">{pages}</ul></body></html>'


def card_html(image_url: Optional[str] = None, props: Optional[Dict[str, str]] = None) -> str:
    block: Dict[str, object] = {"@type": "Product"}
    if image_url:
        block["image"] = image_url
    if props:
        block["additionalProperty"] = [{"name": k, "value": v} for k, v in props.items()]
    return (
        '<html><head><script type="application/ld+json">'
        f"{json.dumps(block)}</script></head><body></body></html>"
    )


def card_hrefs(series: str, count: int, rarity: str = "c") -> List[str]:
    code = series.lower()
    return [f"/cards/{code}-{n:03d}-{rarity}-card-{n}" for n in range(1, count + 1)]


class FakePage:
    """Scripted stand-in for BrowserPage.

    ``index`` maps an index URL to its pages (1-based order); ``items`` maps
    item URLs to their HTML. Unknown URLs fail like a dead link.
    """

    def __init__(
        self,
        index: Optional[Dict[str, List[str]]] = None,
        items: Optional[Dict[str, str]] = None,
        fail_urls: Optional[Set[str]] = None,
        broken_controls: Optional[Set[int]] = None,
    ) -> None:
        self.index = index or {}
        self.items = items or {}
        self.fail_urls = fail_urls or set()
        self.broken_controls = broken_controls or set()
        self.visited: List[str] = []
        self.viewed_pages: List[int] = []
        self.clicks: List[int] = []
        self.pauses: List[int] = []
        self._index_url: Optional[str] = None
        self._page = 0
        self._html = ""

    async def goto(self, url: str) -> None:
        self.visited.append(url)
        if url in self.fail_urls:
            raise NavigationError(url, "timed out after 30000ms")
        if url in self.index:
            self._index_url = url
            self._page = 1
            self._html = self.index[url][0]
        elif url in self.items:
            self._index_url = None
            self._html = self.items[url]
        else:
            raise NavigationError(url, "404")

    async def content(self) -> str:
        if self._index_url is not None:
            self.viewed_pages.append(self._page)
        return self._html

    async def click(self, selector: str) -> bool:
        match = _PAGE_RE.search(selector)
        if self._index_url is None or match is None:
            return False
        target = int(match.group(1))
        pages = self.index[self._index_url]
        if not 1 <= target <= len(pages) or target in self.broken_controls:
            return False
        self.clicks.append(target)
        self._page = target
        self._html = pages[target - 1]
        return True

    async def pause(self, ms: int) -> None:
        self.pauses.append(ms)


class FakeContentStore:
    def __init__(self, fail_numbers: Optional[Set[str]] = None) -> None:
        self.rows: Dict[tuple, dict] = {}
        self.upserts = 0
        self.fail_numbers = fail_numbers or set()

    async def upsert(self, row: dict, conflict_key: str) -> None:
        if row["number"] in self.fail_numbers:
            raise UploadError(f"upsert rejected for {row['number']}")
        key = tuple(row[col] for col in conflict_key.split(","))
        self.rows.setdefault(key, {}).update(row)
        self.upserts += 1

    async def query(self, filters: dict) -> List[dict]:
        return [
            dict(row) for row in self.rows.values()
            if all(row.get(k) == v for k, v in filters.items())
        ]


class FakeAssetStorage:
    def __init__(self, fail_keys: Optional[Set[str]] = None) -> None:
        self.objects: Dict[str, bytes] = {}
        self.uploaded: List[str] = []
        self.fail_keys = fail_keys or set()

    async def upload(self, data: bytes, key: str) -> str:
        if key in self.fail_keys:
            raise RuntimeError("bucket unavailable")
        self.objects[key] = data
        self.uploaded.append(key)
        return self.public_url(key)

    async def list_keys(self, prefix: str) -> Set[str]:
        return {k for k in self.objects if k.startswith(prefix + "/")}

    def public_url(self, key: str) -> str:
        return f"https://cdn.test/{key}"


class FakeFetcher:
    def __init__(self, fail_urls: Optional[Set[str]] = None) -> None:
        self.fetched: List[str] = []
        self.fail_urls = fail_urls or set()
        self.closed = False

    async def fetch(self, url: str) -> bytes:
        self.fetched.append(url)
        if url in self.fail_urls:
            raise UploadError(f"Download of {url} failed after 3 attempts: 404")
        return b"webp:" + url.encode()

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def no_delays():
    return DelayPolicy(
        between_pages=0,
        between_items=0,
        between_uploads=0,
        between_partitions=0,
        page_load=0,
        navigation_timeout=1000,
    )


@pytest.fixture
def adapter():
    return OpecardsAdapter(base_url=SITE)
