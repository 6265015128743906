"""Rarity alias tables and normalization.

Each game owns a flat table mapping a canonical rarity id to the raw labels
(any case, several locales) that should normalize to it. Tables are searched
in declared order, so on an alias shared between games the first game wins.
Ingestion always normalizes with an explicit game, which restricts the lookup
to that game's table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RarityConfig:
    id: str
    short: str
    aliases: Tuple[str, ...]


def _table(*entries: RarityConfig) -> Dict[str, RarityConfig]:
    return {entry.id: entry for entry in entries}


# Rarities that are shown and filtered together: selecting one member
# surfaces cards tagged with any other member.
RARITY_GROUPS: Dict[str, Tuple[str, ...]] = {
    "promo": ("promo", "dlc", "d23"),
}

LORCANA_RARITIES = _table(
    RarityConfig("common", "C", ("common", "commune")),
    RarityConfig("uncommon", "UC", ("uncommon", "peu commune")),
    RarityConfig("rare", "R", ("rare",)),
    RarityConfig("super-rare", "SR", ("super rare", "super-rare")),
    RarityConfig("legendary", "L", ("legendary", "légendaire", "legendaire")),
    RarityConfig("enchanted", "E", ("enchanted", "enchantée", "enchantee")),
    RarityConfig("epic", "EP", ("epic", "épique", "epique")),
    RarityConfig("iconic", "IC", ("iconic", "iconique")),
    RarityConfig("d23", "D23", ("d23",)),
    RarityConfig("es", "ES", ("es",)),
    RarityConfig("gencon", "GC", ("gencon",)),
    RarityConfig("gamescom", "GS", ("gamescom",)),
    RarityConfig("d100", "D100", ("d100",)),
    RarityConfig("promo", "PR", ("promo",)),
    RarityConfig("s", "S", ("spéciale", "speciale", "special")),
    RarityConfig("dlc", "DLC", ("dlc",)),
    RarityConfig("parc", "PC", ("parc",)),
    RarityConfig("cruise", "CR", ("cruise", "croisière", "croisiere")),
)

NARUTO_KAYOU_RARITIES = _table(
    RarityConfig("naruto-rare", "R", ("r",)),
    RarityConfig("naruto-super-rare", "SR", ("sr",)),
    RarityConfig("super-super-rare", "SSR", ("ssr", "super-super-rare", "super super rare")),
    RarityConfig("treasure-rare", "TR", ("tr", "treasure-rare", "treasure rare")),
    RarityConfig("treasure-gold-rare", "TGR", ("tgr", "treasure-gold-rare", "treasure gold rare")),
    RarityConfig("hyper-rare", "HR", ("hr", "hyper-rare", "hyper rare")),
    RarityConfig("ultra-rare", "UR", ("ur", "ultra-rare", "ultra rare")),
    RarityConfig("z-rare", "ZR", ("zr", "z-rare", "z rare")),
    RarityConfig("another-rare", "AR", ("ar", "another-rare", "another rare")),
    RarityConfig("origin-rare", "OR", ("or", "origin-rare", "origin rare")),
    RarityConfig("super-legend-rare", "SLR", ("slr", "super-legend-rare", "super legend rare")),
    RarityConfig("ptr", "PTR", ("ptr",)),
    RarityConfig("pu", "PU", ("pu",)),
    RarityConfig("campaign", "CP", ("cp", "campaign")),
    RarityConfig("naruto-special", "SP", ("sp",)),
    RarityConfig("master-rare", "MR", ("mr", "master-rare", "master rare")),
    RarityConfig("gp", "GP", ("gp",)),
    RarityConfig("naruto-cr", "CR", ("naruto-cr",)),
    RarityConfig("nr", "NR", ("nr",)),
    RarityConfig("bp", "BP", ("bp",)),
    RarityConfig("se", "SE", ("se",)),
    RarityConfig("sv", "SV", ("sv",)),
    RarityConfig("sv-gold", "SVG", ("sv-gold", "svg")),
    RarityConfig("secret-rare", "SCR", ("scr", "secret-rare", "secret rare")),
    RarityConfig("legend-rare", "LR", ("lr", "legend-rare", "legend rare")),
    RarityConfig("naruto-promo", "PR", ("pr",)),
    RarityConfig("br", "BR", ("br",)),
)

# Slug rarity codes used by the One Piece card site, plus the long labels
# shown on its detail pages.
ONEPIECE_RARITIES = _table(
    RarityConfig("leader", "L", ("l", "leader")),
    RarityConfig("common", "C", ("c", "common", "commune")),
    RarityConfig("uncommon", "UC", ("uc", "uncommon", "peu commune")),
    RarityConfig("rare", "R", ("r", "rare")),
    RarityConfig("super-rare", "SR", ("sr", "super rare", "super-rare")),
    RarityConfig("secret-rare", "SEC", ("sec", "secret rare", "secret-rare")),
    RarityConfig("promo", "P", ("p", "promo")),
    RarityConfig("treasure-rare", "TR", ("tr", "treasury rare", "treasure rare")),
    RarityConfig("don", "DON", ("don", "don!!")),
    RarityConfig("sp-card", "SP", ("sp", "sp card")),
)

RARITY_TABLES: Dict[str, Dict[str, RarityConfig]] = {
    "lorcana": LORCANA_RARITIES,
    "naruto-kayou": NARUTO_KAYOU_RARITIES,
    "onepiece": ONEPIECE_RARITIES,
}


def _tables_for(game: Optional[str]) -> List[Dict[str, RarityConfig]]:
    if game is None:
        return list(RARITY_TABLES.values())
    table = RARITY_TABLES.get(game)
    if table is None:
        raise ValueError(f"Unknown game '{game}'. Available: {list(RARITY_TABLES)}")
    return [table]


def normalize_rarity(raw: Optional[str], game: Optional[str] = None) -> Optional[str]:
    """Map a raw rarity label to its canonical id, or None if unknown."""
    if not raw:
        return None
    needle = raw.strip().lower()
    if not needle:
        return None
    for table in _tables_for(game):
        for rarity_id, cfg in table.items():
            if needle in cfg.aliases:
                return rarity_id
    logger.debug("Unrecognized rarity %r (game=%s)", raw, game or "any")
    return None


def _groups_of(rarity_id: str) -> List[Tuple[str, ...]]:
    return [members for members in RARITY_GROUPS.values() if rarity_id in members]


def matches_rarity(
    raw: Optional[str],
    selected: Iterable[str],
    game: Optional[str] = None,
) -> bool:
    """True if the card's rarity is selected directly or through a group."""
    rarity_id = normalize_rarity(raw, game)
    if rarity_id is None:
        return False
    selected = set(selected)
    if rarity_id in selected:
        return True
    return any(selected.intersection(members) for members in _groups_of(rarity_id))


def available_rarities(
    raws: Iterable[Optional[str]],
    game: Optional[str] = None,
) -> set[str]:
    """Normalized ids present in a collection, expanded to whole groups."""
    present = {rid for rid in (normalize_rarity(r, game) for r in raws) if rid}
    for members in RARITY_GROUPS.values():
        if present.intersection(members):
            present.update(members)
    return present


def rarity_config(rarity_id: str, game: Optional[str] = None) -> Optional[RarityConfig]:
    for table in _tables_for(game):
        if rarity_id in table:
            return table[rarity_id]
    return None


def validate_tables() -> List[str]:
    """Return a list of problems with the declared alias tables (empty if sound)."""
    problems: List[str] = []
    for game, table in RARITY_TABLES.items():
        owner: Dict[str, str] = {}
        for rarity_id, cfg in table.items():
            if cfg.id != rarity_id:
                problems.append(f"{game}: key {rarity_id!r} holds config for {cfg.id!r}")
            for alias in cfg.aliases:
                if alias != alias.strip().lower():
                    problems.append(f"{game}: alias {alias!r} is not lower-case/trimmed")
                if alias in owner and owner[alias] != rarity_id:
                    problems.append(
                        f"{game}: alias {alias!r} shared by {owner[alias]!r} and {rarity_id!r}"
                    )
                owner[alias] = rarity_id
    declared = {rid for table in RARITY_TABLES.values() for rid in table}
    for group, members in RARITY_GROUPS.items():
        for member in members:
            if member not in declared:
                problems.append(f"group {group!r}: member {member!r} is not a declared rarity")
    return problems
