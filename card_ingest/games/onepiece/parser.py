"""One Piece card slug parser.

Card detail URLs on the source site look like:
  /cards/op13-001-l-monkey-d-luffy            (French, no language prefix)
  /cards/en-op01-001-l-roronoa-zoro           (English)
  /cards/en-op01-001-l-version-2-roronoa-zoro (alternate print)
  /cards/jp-op01-001-l-premium-bandai-roronoa-zoro (special print)
  /cards/en-p-008-p-yamato                    (promo, no set digits)
  /cards/en-op01-016-sr-prb01-nami            (listed in a premium collection)

Layout: [lang-]letters[-]digits-NNN-rarity-name. Fields are split
positionally; the name is rebuilt from the slug words, which is best effort
rather than a faithful transliteration.

Collection series (premium boosters, promos) list cards numbered in other
series. Their members are stored under the collection with the origin code
kept in the number, e.g. PRB01 "OP01-016".
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

from card_ingest.models import Finish, ParsedCard

ASSET_BASE = "https://static.opecards.fr/cards"

_SLUG_RE = re.compile(
    r"^(?:(?P<lang>jp|en)-)?(?P<letters>[a-z]+)-?(?P<digits>\d+)-(?P<number>\d{3})"
    r"-(?P<rarity>[a-z]+)-(?P<name>.+)$",
    re.IGNORECASE,
)
_PROMO_RE = re.compile(
    r"^(?:(?P<lang>jp|en)-)?(?P<letters>p)-(?P<digits>)(?P<number>\d{3})"
    r"-(?P<rarity>[a-z]+)-(?P<name>.+)$",
    re.IGNORECASE,
)
_COLLECTION_MARKER_RE = re.compile(r"^prb\d+-", re.IGNORECASE)

_Marker = Tuple[Tuple[str, ...], Finish, str]

# Name-segment markers: (tokens, finish, storage suffix).
# Leading markers are checked before trailing ones.
_LEADING_MARKERS: Tuple[_Marker, ...] = (
    (("version", "2"), Finish.ALTERNATE, "-ALT"),
    (("alternative", "art"), Finish.ALTERNATE, "-ALT"),
    (("full", "art"), Finish.ALTERNATE, "-FA"),
    (("parallel",), Finish.ALTERNATE, "-PR"),
    (("manga",), Finish.ALTERNATE, "-MG"),
    (("premium", "bandai"), Finish.SPECIAL, "-SP"),
    (("special", "art"), Finish.SPECIAL, "-SP"),
)
_TRAILING_MARKERS: Tuple[_Marker, ...] = (
    (("version", "2"), Finish.ALTERNATE, "-ALT"),
    (("box", "topper"), Finish.ALTERNATE, "-BT"),
    (("full", "art"), Finish.ALTERNATE, "-FA"),
    (("alternate",), Finish.ALTERNATE, "-ALT"),
    (("parallel",), Finish.ALTERNATE, "-PR"),
    (("manga",), Finish.ALTERNATE, "-MG"),
    (("alt",), Finish.ALTERNATE, "-ALT"),
    (("sp",), Finish.SPECIAL, "-SP"),
)

# Applied after generic title-casing.
PROPER_NOUNS: Tuple[Tuple[str, str], ...] = (
    ("Monkeydluffy", "Monkey D. Luffy"),
    ("Trafalgarlaw", "Trafalgar Law"),
    ("Monkey D Luffy", "Monkey D. Luffy"),
    ("Portgas D Ace", "Portgas D. Ace"),
    ("Marshall D Teach", "Marshall D. Teach"),
    ("Trafalgar D Water Law", "Trafalgar D. Water Law"),
)


def slug_from_url(url: str) -> str:
    """Strip scheme, host, query and the /cards/ prefix from an item URL."""
    path = url.split("?", 1)[0].split("#", 1)[0]
    if "/cards/" in path:
        path = path.split("/cards/", 1)[1]
    return path.strip("/")


def slug_to_name(name_part: str) -> str:
    words = [w for w in name_part.split("-") if w]
    name = " ".join(w[:1].upper() + w[1:] for w in words)
    for raw, proper in PROPER_NOUNS:
        name = name.replace(raw, proper)
    return name


def detect_variant(name_part: str, rarity: str) -> Tuple[Finish, str, bool, str]:
    """Return (finish, storage suffix, alternate_art, name_part with markers stripped).

    Parallel prints share the alternate finish but are not alternate art.
    """
    tokens = name_part.lower().split("-")
    words = name_part.split("-")
    for marker, finish, suffix in _LEADING_MARKERS:
        if len(tokens) > len(marker) and tuple(tokens[: len(marker)]) == marker:
            return finish, suffix, suffix != "-PR", "-".join(words[len(marker):])
    for marker, finish, suffix in _TRAILING_MARKERS:
        if len(tokens) > len(marker) and tuple(tokens[-len(marker):]) == marker:
            return finish, suffix, suffix != "-PR", "-".join(words[: -len(marker)])
    if rarity == "sp":
        return Finish.SPECIAL, "-SP", True, name_part
    return Finish.STANDARD, "", False, name_part


def build_image_url(slug: str, series_code: str, language: str, lang_prefix: Optional[str]) -> str:
    """Deterministic asset URL for a slug; used when the page yields nothing."""
    card_lang = lang_prefix or ("" if language == "fr" else language)
    prefix = "image-trading-cards" if card_lang else "image-cartes-a-collectionner"
    return (
        f"{ASSET_BASE}/{card_lang or 'fr'}/{series_code.lower()}/"
        f"{prefix}-one-piece-card-game-tcg-opecards-{slug}.webp"
    )


def normalize_number(number: str) -> str:
    """Zero-pad a bare in-set number; collection numbers ("OP01-016") pass through."""
    number = str(number)
    return number.zfill(3) if number.isdigit() else number


def storage_number(number: str, variant: str = "") -> str:
    return f"{normalize_number(number)}{variant}"


def parse_card_slug(
    url: str, series_code: str, language: str, collection: bool = False
) -> Optional[ParsedCard]:
    """Parse an item URL or slug. Returns None for an unrecognized pattern.

    With ``collection`` set, cards from other series are members of the
    partition rather than reprints.
    """
    slug = slug_from_url(url)
    match = _SLUG_RE.match(slug) or _PROMO_RE.match(slug)
    if not match:
        return None

    letters = match.group("letters").upper()
    code = f"{letters}{match.group('digits')}"
    number = match.group("number")
    rarity = match.group("rarity").lower()
    lang_prefix = match.group("lang")
    lang_prefix = lang_prefix.lower() if lang_prefix else None

    name_part = _COLLECTION_MARKER_RE.sub("", match.group("name"))
    finish, variant, alternate_art, name_part = detect_variant(name_part, rarity)
    partition_code = series_code.upper()

    return ParsedCard(
        slug=slug,
        public_code=f"{code}-{number}-{rarity.upper()}",
        series_code=code,
        number=number,
        rarity_raw=rarity,
        name=slug_to_name(name_part),
        finish=finish,
        variant=variant,
        alternate_art=alternate_art,
        fallback_image_url=build_image_url(slug, code, language, lang_prefix),
        url=f"/cards/{slug}",
        reprint=code != partition_code and not collection,
        partition_code=partition_code,
    )


def extract_number(url: str, series_code: str, collection: bool = False) -> Optional[str]:
    """Storage number (print suffix included) of an item link in ``series_code``.

    Links to other series (reprints listed on a set page) yield None unless
    the series is a collection.
    """
    parsed = parse_card_slug(url, series_code, "fr", collection=collection)
    if parsed is None or parsed.reprint:
        return None
    return parsed.storage_number
