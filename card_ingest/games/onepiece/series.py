"""One Piece series catalog: codes, names, language availability, index slugs.

The index slug is the path segment of the series page on the card site,
e.g. /series/op13-successeurs (French) or /series/en-op13-successors.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from card_ingest.models import SeriesConfig

LANGUAGES: Tuple[str, ...] = ("fr", "en", "jp")

_INDEX_SLUGS: Dict[str, Dict[str, str]] = {
    "fr": {
        "OP13": "op13-successeurs",
        "OP12": "op12-l-heritage-du-maitre",
        "OP11": "op11-des-poings-vifs-comme-l-eclair",
        "OP10": "op10-sang-royal",
        "OP09": "op09-les-nouveaux-empereurs",
        "ST22": "st22-deck-de-demarrage-ace-et-newgate",
        "ST21": "st21-deck-de-demarrage-ex-gear-5th",
        "ST20": "st20-deck-pour-debutant-charlotte-katakuri",
        "ST19": "st19-deck-pour-debutant-smoker",
        "ST18": "st18-deck-pour-debutant-monkey-d-luffy",
        "ST17": "st17-deck-pour-debutant-donquixote-doflamingo",
        "ST16": "st16-deck-pour-debutant-uta",
        "ST15": "st15-deck-pour-debutant-edward-newgate",
        "PRB01": "prb01-one-piece-card-the-best-fr",
        "PRB02": "prb02-fr-one-piece-card-the-best-volume-2",
        "EB02": "eb02-anime-25th-collection",
        "P": "p-cartes-promotionnelles",
        "STP": "stp-tournoi-boutique-promo",
    },
    "en": {
        "OP13": "en-op13-successors",
        "OP12": "en-op12-master-s-legacy",
        "OP11": "en-op11-endless-dream",
        "OP10": "en-op10-royal-blood",
        "OP09": "en-op09-the-four-emperors",
        "OP08": "en-op08-two-legends",
        "OP07": "en-op07-500-years-in-the-future",
        "OP06": "en-op06-wings-of-the-captain",
        "OP05": "en-op05-awakening-of-the-new-era",
        "OP04": "en-op04-kingdoms-of-intrigue",
        "OP03": "en-op03-pillars-of-strength",
        "OP02": "en-op02-paramount-war",
        "OP01": "en-op01-romance-dawn",
        "ST22": "en-st22-starter-deck-ace-newgate",
        "ST21": "en-st21-starter-deck-gear-5",
        "ST20": "en-st20-starter-deck-yellow-charlotte-katakuri",
        "ST19": "en-st19-starter-deck-black-smoker",
        "ST18": "en-st18-starter-deck-purple-monkey-d-luffy",
        "ST17": "en-st17-starter-deck-blue-donquixote-doflamingo",
        "ST16": "en-st16-starter-deck-green-uta",
        "ST15": "en-st15-starter-deck-red-edward-newgate",
        "ST14": "en-st14-3d2y",
        "ST13": "en-st13-ultra-deck-the-three-brothers",
        "ST12": "en-st12-zoro-sanji",
        "ST11": "en-st11-uta",
        "ST10": "en-st10-ultra-deck-the-three-captains",
        "ST09": "en-st09-yamato",
        "ST08": "en-st08-monkey-d-luffy",
        "ST07": "en-st07-big-mom-pirates",
        "ST06": "en-st06-navy",
        "ST05": "en-st05-one-piece-film-edition",
        "ST04": "en-st04-animal-kingdom-pirates",
        "ST03": "en-st03-the-seven-warlords-of-the-sea",
        "ST02": "en-st02-worst-generation",
        "ST01": "en-st01-straw-hat-crew",
        "PRB01": "en-prb01-one-piece-card-the-best",
        "PRB02": "en-prb02-one-piece-card-the-best-vol-2",
        "EB01": "en-eb01-memorial-collection",
        "EB02": "en-eb02-anime-25th-collection",
        "P": "en-p-promo-cards",
        "STP": "en-stp-tournament-shop-promo",
    },
    "jp": {
        "OP01": "jp-op01-romance-dawn",
        "OP02": "jp-op02-paramount-war",
        "OP03": "jp-op03-pillars-of-strength",
        "OP04": "jp-op04-kingdoms-of-intrigue",
        "OP05": "jp-op05-awakening-of-the-new-era",
        "OP06": "jp-op06-wings-of-the-captain",
        "OP07": "jp-op07-500-years-in-the-future",
        "OP08": "jp-op08-two-legends",
        "OP09": "jp-op09-the-four-emperors",
        "OP10": "jp-op10-royal-blood",
        "OP11": "jp-op11-endless-dream",
        "OP12": "jp-op12-master-s-legacy",
        "OP13": "jp-op13-successors",
        "ST01": "jp-st01-straw-hat-crew",
        "ST02": "jp-st02-worst-generation",
        "ST03": "jp-st03-the-seven-warlords-of-the-sea",
        "ST04": "jp-st04-animal-kingdom-pirates",
        "P": "jp-p-promo-cards",
    },
}


# Series types whose index pages list cards numbered in other series.
COLLECTION_TYPES = ("premium", "promo")


def _series(
    code: str,
    name: str,
    series_type: str,
    languages: Tuple[str, ...],
    card_count: Optional[int] = None,
    name_fr: Optional[str] = None,
) -> SeriesConfig:
    return SeriesConfig(
        code=code,
        name=name,
        name_fr=name_fr,
        series_type=series_type,
        languages=languages,
        card_count=card_count,
        collection=series_type in COLLECTION_TYPES,
        index_slugs={
            lang: slugs[code] for lang, slugs in _INDEX_SLUGS.items() if code in slugs
        },
    )


EN_JP = ("en", "jp")
FR_EN = ("fr", "en")
ALL = ("fr", "en", "jp")

ONEPIECE_SERIES: List[SeriesConfig] = [
    # Boosters: French releases start at OP09
    _series("OP01", "Romance Dawn", "booster", EN_JP, 121),
    _series("OP02", "Paramount War", "booster", EN_JP, 121),
    _series("OP03", "Pillars of Strength", "booster", EN_JP, 122),
    _series("OP04", "Kingdoms of Intrigue", "booster", EN_JP, 122),
    _series("OP05", "Awakening of the New Era", "booster", EN_JP, 122),
    _series("OP06", "Wings of the Captain", "booster", EN_JP, 131),
    _series("OP07", "500 Years in the Future", "booster", EN_JP, 141),
    _series("OP08", "Two Legends", "booster", EN_JP, 142),
    _series("OP09", "The Four Emperors", "booster", ALL, 146),
    _series("OP10", "Royal Blood", "booster", ALL, 150, "Sang Royal"),
    _series("OP11", "Endless Dream", "booster", ALL, 155, "Reve Sans Fin"),
    _series("OP12", "Master's Legacy", "booster", ALL, 155, "L'Heritage du Maitre"),
    _series("OP13", "Successors", "booster", ALL, 175, "Successeurs"),
    # Starter decks
    _series("ST01", "Straw Hat Crew", "starter", EN_JP, 51),
    _series("ST02", "Worst Generation", "starter", EN_JP, 51),
    _series("ST03", "The Seven Warlords of the Sea", "starter", EN_JP, 51),
    _series("ST04", "Animal Kingdom Pirates", "starter", EN_JP, 51),
    _series("ST05", "ONE PIECE FILM edition", "starter", ("en",), 51),
    _series("ST06", "Navy", "starter", ("en",), 51),
    _series("ST07", "Big Mom Pirates", "starter", ("en",), 51),
    _series("ST08", "Monkey D. Luffy", "starter", ("en",), 51),
    _series("ST09", "Yamato", "starter", ("en",), 51),
    _series("ST10", "Ultra Deck: The Three Captains", "starter", ("en",), 51),
    _series("ST11", "Uta", "starter", ("en",), 51),
    _series("ST12", "Zoro & Sanji", "starter", ("en",), 51),
    _series("ST13", "Ultra Deck: The Three Brothers", "starter", ("en",), 51),
    _series("ST14", "3D2Y", "starter", ("en",), 51),
    _series("ST15", "RED Edward Newgate", "starter", FR_EN, 21),
    _series("ST16", "GREEN Uta", "starter", FR_EN, 21),
    _series("ST17", "BLUE Donquixote Doflamingo", "starter", FR_EN, 21),
    _series("ST18", "PURPLE Monkey D. Luffy", "starter", FR_EN, 21),
    _series("ST19", "BLACK Smoker", "starter", FR_EN, 21),
    _series("ST20", "YELLOW Charlotte Katakuri", "starter", FR_EN, 21),
    _series("ST21", "Gear 5", "starter", FR_EN, 51),
    _series("ST22", "Ace & Newgate", "starter", FR_EN, 31),
    # Collections list cards under their original series slugs
    _series("PRB01", "One Piece Card - The Best Vol.1", "premium", FR_EN, 316),
    _series("PRB02", "One Piece Card - The Best Vol.2", "premium", FR_EN, 316),
    _series("EB01", "Memorial Collection", "special", ("en",), 72),
    _series("EB02", "Anime 25th Collection", "special", FR_EN),
    _series("P", "Promotional Cards", "promo", ALL, name_fr="Cartes Promotionnelles"),
    _series("STP", "Tournament & Shop Promos", "promo", FR_EN, name_fr="Promos Tournoi et Boutique"),
]


def get_series(code: str) -> Optional[SeriesConfig]:
    code = code.upper()
    for series in ONEPIECE_SERIES:
        if series.code == code:
            return series
    return None


def active_series() -> List[SeriesConfig]:
    return [s for s in ONEPIECE_SERIES if not s.skip]
