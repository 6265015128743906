"""Adapter for opecards.fr, a browser-rendered One Piece card catalog."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from card_ingest.games.onepiece import parser
from card_ingest.games.onepiece.attributes import extract_attributes
from card_ingest.games.onepiece.series import ONEPIECE_SERIES, get_series
from card_ingest.images import IMAGE_STRATEGIES, resolve_from_soup
from card_ingest.models import CardRecord, ParsedCard, SeriesConfig
from card_ingest.rarities import normalize_rarity

logger = logging.getLogger(__name__)

BASE_URL = "https://www.opecards.fr"
ASSET_HOST = "static.opecards.fr"
CARDS_PER_PAGE = 24


class OpecardsAdapter:
    """Series index pages list 24 cards per page behind a JS pagination bar."""

    items_per_page = CARDS_PER_PAGE
    asset_host = ASSET_HOST

    def __init__(self, base_url: str = BASE_URL) -> None:
        self._base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return "opecards"

    @property
    def game(self) -> str:
        return "onepiece"

    def series_catalog(self) -> List[SeriesConfig]:
        return list(ONEPIECE_SERIES)

    def index_url(self, series: SeriesConfig, language: str) -> Optional[str]:
        if not series.available_in(language):
            return None
        slug = series.index_slugs.get(language)
        if slug is None:
            slug = series.code.lower() if language == "fr" else f"{language}-{series.code.lower()}"
        return f"{self._base_url}/series/{slug}"

    def item_url(self, href: str) -> str:
        if href.startswith("http"):
            return href
        return f"{self._base_url}/{href.lstrip('/')}"

    def item_links(self, html: str) -> List[str]:
        soup = BeautifulSoup(html, "html.parser")
        links: List[str] = []
        for a in soup.select('a[href*="/cards/"]'):
            href = a.get("href")
            if href and href not in links:
                links.append(href)
        return links

    def max_page(self, html: str) -> int:
        soup = BeautifulSoup(html, "html.parser")
        pages = [1]
        for link in soup.select(".pagination .page-item .page-link[data-page]"):
            try:
                pages.append(int(link.get("data-page", "0")))
            except ValueError:
                continue
        return max(pages)

    def page_selector(self, page: int) -> str:
        return f'.pagination .page-item .page-link[data-page="{page}"]'

    def item_number(self, url: str, series_code: str) -> Optional[str]:
        return parser.extract_number(url, series_code, collection=_is_collection(series_code))

    def parse_item(self, url: str, series_code: str, language: str) -> Optional[ParsedCard]:
        return parser.parse_card_slug(
            url, series_code, language, collection=_is_collection(series_code)
        )

    def enrich(self, html: str, parsed: ParsedCard, language: str) -> Tuple[Optional[str], Dict[str, Any]]:
        soup = BeautifulSoup(html, "html.parser")
        image_url = resolve_from_soup(soup, language, self.asset_host, IMAGE_STRATEGIES)
        if image_url is None:
            logger.debug("%s: no image on page", parsed.public_code)
        return image_url, extract_attributes(soup)

    def build_record(
        self,
        parsed: ParsedCard,
        language: str,
        image_url: Optional[str],
        attributes: Dict[str, Any],
    ) -> CardRecord:
        attrs = dict(attributes)
        attrs["public_code"] = parsed.public_code
        if parsed.record_number != parsed.number:
            attrs["origin_series"] = parsed.series_code
        if parsed.alternate_art:
            attrs["alternate_art"] = True
        rarity = normalize_rarity(parsed.rarity_raw, game=self.game)
        if rarity is None:
            logger.debug("%s: unknown rarity %r", parsed.public_code, parsed.rarity_raw)
        return CardRecord(
            series_code=parsed.partition_code or parsed.series_code,
            number=parser.normalize_number(parsed.record_number),
            language=language,
            name=parsed.name,
            rarity=rarity,
            finish=parsed.finish,
            variant=parsed.variant,
            attributes=attrs,
            image_url=image_url,
            image_missing=image_url is None,
        )


def _is_collection(series_code: str) -> bool:
    series = get_series(series_code)
    return series is not None and series.collection
