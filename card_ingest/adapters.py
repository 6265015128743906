"""Base protocol for card site adapters and adapter registry."""

from __future__ import annotations

import importlib
from typing import Any, Dict, List, Optional, Protocol, Tuple, Type, runtime_checkable

from card_ingest.games.onepiece.adapters import ONEPIECE_ADAPTERS
from card_ingest.models import CardRecord, ParsedCard, SeriesConfig


@runtime_checkable
class CardSiteAdapter(Protocol):
    """Protocol that all card site adapters must satisfy.

    Adapters are discovered by name from YAML config and instantiated by the
    pipeline.  Each adapter knows the URL layout and markup of one card site:
    where a series index lives, how pagination is rendered, how item links
    encode card identity and how a detail page is turned into a CardRecord.
    Adapters never navigate themselves; the pipeline hands them HTML.
    """

    @property
    def name(self) -> str:
        """Human-readable adapter name for logging."""
        ...

    @property
    def game(self) -> str:
        ...

    items_per_page: int
    asset_host: str

    def series_catalog(self) -> List[SeriesConfig]:
        """Return the static series catalog for this site's game."""
        ...

    def index_url(self, series: SeriesConfig, language: str) -> Optional[str]:
        """Absolute URL of the series index page, or None if not published."""
        ...

    def item_url(self, href: str) -> str:
        """Absolute URL for an item link as found on an index page."""
        ...

    def item_links(self, html: str) -> List[str]:
        """Item detail links on one index page, in page order."""
        ...

    def max_page(self, html: str) -> int:
        """Highest page index advertised by the pagination control."""
        ...

    def page_selector(self, page: int) -> str:
        """CSS selector of the pagination control that opens ``page``."""
        ...

    def item_number(self, url: str, series_code: str) -> Optional[str]:
        """Storage number for an item link, None when it belongs elsewhere."""
        ...

    def parse_item(self, url: str, series_code: str, language: str) -> Optional[ParsedCard]:
        ...

    def enrich(self, html: str, parsed: ParsedCard, language: str) -> Tuple[Optional[str], Dict[str, Any]]:
        """Resolve (image URL, attributes) from a detail page."""
        ...

    def build_record(
        self,
        parsed: ParsedCard,
        language: str,
        image_url: Optional[str],
        attributes: Dict[str, Any],
    ) -> CardRecord:
        ...


# Unified adapter registry: game -> { adapter_name -> qualified class name }
_ADAPTER_REGISTRY: Dict[str, Dict[str, str]] = {
    "onepiece": ONEPIECE_ADAPTERS,
}


def get_adapter_class(game: str, name: str) -> Type[CardSiteAdapter]:
    """Import and return the adapter class for a game and site name."""
    game_adapters = _ADAPTER_REGISTRY.get(game)
    if game_adapters is None:
        raise ValueError(
            f"Unknown game '{game}'. Available: {list(_ADAPTER_REGISTRY.keys())}"
        )
    qualified = game_adapters.get(name)
    if qualified is None:
        raise ValueError(
            f"Unknown adapter '{name}' for game '{game}'. "
            f"Available: {list(game_adapters.keys())}"
        )
    module_path, class_name = qualified.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


def known_adapters(game: str) -> set[str]:
    """Return the set of known adapter names for a game."""
    game_adapters = _ADAPTER_REGISTRY.get(game, {})
    return set(game_adapters.keys())


def known_games() -> set[str]:
    return set(_ADAPTER_REGISTRY.keys())
