"""Image URL resolution from a fetched card detail page.

Resolution is an ordered list of plain extraction functions. Each takes the
parsed page, the target language and the asset host, and returns a candidate
URL or None. The first candidate that is not a placeholder wins.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

Strategy = Callable[[BeautifulSoup, str, str], Optional[str]]

def is_placeholder(url: str) -> bool:
    """Card backs and lazy-load spinners are never a card's real image."""
    filename = url.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1].lower()
    return filename.startswith("back") or "loader" in filename


def _json_ld_blocks(soup: BeautifulSoup) -> list[Any]:
    blocks = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            blocks.append(json.loads(script.string or script.get_text() or "{}"))
        except (json.JSONDecodeError, TypeError):
            logger.debug("Skipping unparsable JSON-LD block")
    return blocks


def _image_from_ld(image: Any, language: str) -> Optional[str]:
    if isinstance(image, str):
        return image or None
    if isinstance(image, dict):
        return image.get("contentUrl") or image.get("url")
    if isinstance(image, list) and image:
        for entry in image:
            url = _image_from_ld(entry, language)
            if url and f"/{language}/" in url:
                return url
        return _image_from_ld(image[0], language)
    return None


def from_json_ld(soup: BeautifulSoup, language: str, asset_host: str) -> Optional[str]:
    for block in _json_ld_blocks(soup):
        if isinstance(block, dict) and block.get("image"):
            url = _image_from_ld(block["image"], language)
            if url:
                return url
    return None


def from_og_image(soup: BeautifulSoup, language: str, asset_host: str) -> Optional[str]:
    tag = soup.find("meta", attrs={"property": "og:image"})
    if tag is None:
        return None
    return tag.get("content") or None


def from_primary_image(soup: BeautifulSoup, language: str, asset_host: str) -> Optional[str]:
    tag = soup.select_one(f'img[src*="{asset_host}/cards/{language}"]')
    return tag.get("src") if tag is not None else None


def from_any_image(soup: BeautifulSoup, language: str, asset_host: str) -> Optional[str]:
    tag = soup.select_one(f'img[src*="{asset_host}/cards"]')
    return tag.get("src") if tag is not None else None


# (strategy, rejects placeholders). Structured data is trusted as-is.
IMAGE_STRATEGIES: Sequence[Tuple[Strategy, bool]] = (
    (from_json_ld, False),
    (from_og_image, True),
    (from_primary_image, True),
    (from_any_image, True),
)


def resolve_image_url(
    html: str,
    language: str,
    asset_host: str,
    strategies: Sequence[Tuple[Strategy, bool]] = IMAGE_STRATEGIES,
) -> Optional[str]:
    """Return the first non-placeholder image URL found on the page."""
    soup = BeautifulSoup(html, "html.parser")
    return resolve_from_soup(soup, language, asset_host, strategies)


def resolve_from_soup(
    soup: BeautifulSoup,
    language: str,
    asset_host: str,
    strategies: Sequence[Tuple[Strategy, bool]] = IMAGE_STRATEGIES,
) -> Optional[str]:
    for strategy, rejects_placeholders in strategies:
        url = strategy(soup, language, asset_host)
        if not url:
            continue
        if rejects_placeholders and is_placeholder(url):
            logger.debug("%s: rejected placeholder %s", strategy.__name__, url)
            continue
        logger.debug("%s: resolved %s", strategy.__name__, url)
        return url
    return None
