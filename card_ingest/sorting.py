"""Card number ordering.

Card numbers come in several shapes:
  "001"            plain in-set number
  "001-ALT"        plain number with a finish suffix
  "1/P3"           promo slash notation (number / promo code)
  "R-005"          rarity-prefixed numbering
  "NRSS-AR-001"    multi-segment rarity prefix

Plain numbers sort first, promos last (grouped by promo code P1, P2, ...),
rarity-prefixed numbers by the declared prefix order, then by numeric value.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

T = TypeVar("T")

# Regular rarities first, then special editions.
RARITY_PREFIX_ORDER: Tuple[str, ...] = (
    "R", "SR", "SSR", "TR", "TGR", "HR", "UR", "ZR", "AR", "AR-SILVER", "OR", "SLR",
    "PTR", "PU", "CP", "SP", "MR", "GP", "CR", "NR", "BP", "SE", "SV", "SV-SILVER", "SV-GOLD",
    "SCR", "LR", "PR", "BR",
    "SS-HR", "SS-OR", "SS-SSR",
    "NRSS-AR", "NRSS-SE", "NRSS-SP", "NRSS-UR",
)

_FINISH_SUFFIX_RE = re.compile(r"^(\d+)-[A-Z]+$")
_PREFIXED_RE = re.compile(r"^(.+)-(\d+)$")
_LEADING_INT_RE = re.compile(r"^\d+")


def is_promo_number(number: str, rarity: Optional[str] = None) -> bool:
    return "/" in number or rarity == "promo"


def _promo_code_value(number: str) -> int:
    if "/" not in number:
        return 0
    code = number.split("/", 1)[1]
    digits = re.sub(r"\D", "", code)
    return int(digits) if digits else 0


def _numeric_value(number: str) -> int:
    if "/" in number:
        head = number.split("/", 1)[0]
        match = _LEADING_INT_RE.match(head)
        return int(match.group()) if match else 0
    match = _PREFIXED_RE.match(number)
    if match:
        return int(match.group(2))
    match = _LEADING_INT_RE.match(number)
    return int(match.group()) if match else 0


def _rarity_prefix_rank(number: str) -> int:
    if "/" in number or _FINISH_SUFFIX_RE.match(number):
        return -1
    match = _PREFIXED_RE.match(number)
    if not match:
        return -1
    prefix = match.group(1).upper()
    try:
        return RARITY_PREFIX_ORDER.index(prefix)
    except ValueError:
        return len(RARITY_PREFIX_ORDER)


def card_sort_key(number: str, rarity: Optional[str] = None) -> Tuple[int, int, int, int, str]:
    """Sort key for a card number; see module docstring for the ordering."""
    promo = is_promo_number(number, rarity)
    return (
        1 if promo else 0,
        _promo_code_value(number) if promo else 0,
        _rarity_prefix_rank(number),
        _numeric_value(number),
        number,
    )


def sort_by_number(
    items: Iterable[T],
    number: Callable[[T], str],
    rarity: Callable[[T], Optional[str]] = lambda _: None,
) -> List[T]:
    """Return items sorted by card number without mutating the input."""
    return sorted(items, key=lambda item: card_sort_key(number(item), rarity(item)))
