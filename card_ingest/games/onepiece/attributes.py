"""One Piece attribute normalization (colors, card types, battle attributes).

Labels arrive in French or English depending on the page language.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

COLOR_MAP: Dict[str, str] = {
    "rouge": "red",
    "red": "red",
    "vert": "green",
    "green": "green",
    "bleu": "blue",
    "blue": "blue",
    "violet": "purple",
    "purple": "purple",
    "noir": "black",
    "black": "black",
    "jaune": "yellow",
    "yellow": "yellow",
    "multicolore": "multicolor",
    "multicolor": "multicolor",
}

CARD_TYPE_MAP: Dict[str, str] = {
    "leader": "leader",
    "personnage": "character",
    "character": "character",
    "événement": "event",
    "evenement": "event",
    "event": "event",
    "lieu": "stage",
    "stage": "stage",
    "don!!": "don",
    "don": "don",
}

ATTRIBUTE_MAP: Dict[str, str] = {
    "frappe": "strike",
    "strike": "strike",
    "tranche": "slash",
    "slash": "slash",
    "spécial": "special",
    "special": "special",
    "portée": "ranged",
    "ranged": "ranged",
    "sagesse": "wisdom",
    "wisdom": "wisdom",
}

# Detail-page property labels (both languages) -> attribute bag key.
PROPERTY_KEYS: Dict[str, str] = {
    "couleur": "colors",
    "color": "colors",
    "colour": "colors",
    "type": "card_type",
    "attribut": "attribute",
    "attribute": "attribute",
    "puissance": "power",
    "power": "power",
    "coût": "cost",
    "cout": "cost",
    "cost": "cost",
    "vie": "life",
    "life": "life",
    "contre": "counter",
    "counter": "counter",
    "affiliation": "affiliations",
    "affiliations": "affiliations",
    "type(s)": "affiliations",
    "effet": "effect_text",
    "effect": "effect_text",
    "déclencheur": "trigger",
    "trigger": "trigger",
    "illustrateur": "illustrator",
    "illustrator": "illustrator",
}

_INT_KEYS = frozenset({"power", "cost", "life", "counter"})
_WORD_RE = re.compile(r"[\wÀ-ÿ!]+")


def parse_colors(raw: str) -> List[str]:
    colors: List[str] = []
    for word in _WORD_RE.findall(raw.lower()):
        color = COLOR_MAP.get(word)
        if color and color not in colors:
            colors.append(color)
    return colors


def parse_card_type(raw: str) -> str:
    return CARD_TYPE_MAP.get(raw.strip().lower(), "character")


def parse_attribute(raw: str) -> Optional[str]:
    return ATTRIBUTE_MAP.get(raw.strip().lower())


def _int_or_none(val: Any) -> Optional[int]:
    if val is None:
        return None
    match = re.search(r"-?\d+", str(val))
    return int(match.group()) if match else None


def _normalize_property(key: str, value: Any) -> Any:
    if key in _INT_KEYS:
        return _int_or_none(value)
    if key == "colors":
        return parse_colors(str(value))
    if key == "card_type":
        return parse_card_type(str(value))
    if key == "attribute":
        return parse_attribute(str(value))
    if key == "affiliations":
        if isinstance(value, list):
            return [str(v).strip() for v in value if str(v).strip()]
        return [a.strip() for a in str(value).split("/") if a.strip()]
    return str(value).strip() or None


def extract_attributes(soup: BeautifulSoup) -> Dict[str, Any]:
    """Collect game attributes from the page's JSON-LD ``additionalProperty`` list."""
    attributes: Dict[str, Any] = {}
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            block = json.loads(script.string or script.get_text() or "{}")
        except (json.JSONDecodeError, TypeError):
            continue
        if not isinstance(block, dict):
            continue
        for prop in block.get("additionalProperty") or []:
            if not isinstance(prop, dict):
                continue
            label = str(prop.get("name", "")).strip().lower()
            key = PROPERTY_KEYS.get(label)
            if key is None or key in attributes:
                continue
            value = _normalize_property(key, prop.get("value"))
            if value not in (None, [], ""):
                attributes[key] = value
    if attributes:
        logger.debug("Extracted attributes: %s", sorted(attributes))
    return attributes
