"""Base data models for card records, series catalog entries and progress.

Game-specific parsing lives in the game packages (e.g. games/onepiece/);
everything they produce is normalized into a CardRecord before it reaches
the sink.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Finish(str, Enum):
    """Print variant of a card."""

    STANDARD = "standard"
    ALTERNATE = "alternate"
    SPECIAL = "special"

    @property
    def suffix(self) -> str:
        """Suffix appended to the stored card number for non-standard prints."""
        return _FINISH_SUFFIXES[self]


_FINISH_SUFFIXES = {
    Finish.STANDARD: "",
    Finish.ALTERNATE: "-ALT",
    Finish.SPECIAL: "-SP",
}


class ItemOutcome(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Partition:
    """Unit of ingestion work: one series in one language."""

    series_code: str  # e.g. "OP13"
    language: str  # "fr", "en", "jp"

    def __str__(self) -> str:
        return f"{self.series_code}-{self.language}"


@dataclass(frozen=True)
class CardKey:
    """Natural key of a card record: (series, number, language)."""

    series_code: str
    number: str
    language: str

    def __str__(self) -> str:
        return f"{self.series_code}:{self.number}:{self.language}"

    @classmethod
    def parse(cls, raw: str) -> "CardKey":
        series_code, number, language = raw.split(":", 2)
        return cls(series_code=series_code, number=number, language=language)


@dataclass
class SeriesConfig:
    """Static catalog entry for one card series."""

    code: str  # e.g. "OP13", "ST01"
    name: str
    series_type: str  # "booster", "starter", "premium", "special", "promo"
    languages: Tuple[str, ...] = ("fr", "en", "jp")
    name_fr: Optional[str] = None
    card_count: Optional[int] = None
    skip: bool = False
    collection: bool = False  # lists cards numbered in other series
    index_slugs: Dict[str, str] = field(default_factory=dict)

    def available_in(self, language: str) -> bool:
        return language.lower() in self.languages


@dataclass
class ParsedCard:
    """Fields extracted from an item slug, before enrichment and normalization."""

    slug: str
    public_code: str  # e.g. "OP13-001-L"
    series_code: str
    number: str  # zero-padded, e.g. "001"
    rarity_raw: str  # lower-cased rarity segment, e.g. "sr"
    name: str
    finish: Finish = Finish.STANDARD
    variant: str = ""  # storage suffix of the print, e.g. "-PR"
    alternate_art: bool = False
    fallback_image_url: str = ""
    url: str = ""
    reprint: bool = False  # slug belongs to another series than the partition
    partition_code: str = ""  # series the item is listed under

    @property
    def record_number(self) -> str:
        """In-partition number; collection members keep their origin code."""
        if not self.partition_code or self.partition_code == self.series_code:
            return self.number
        return f"{self.series_code}-{self.number}"

    @property
    def storage_number(self) -> str:
        return f"{self.record_number}{self.variant}"


@dataclass
class CardRecord:
    """Canonical unit of ingestion, unique by (series_code, number, language).

    ``number`` is the bare in-set number; the stored number carries the
    print suffix (``variant``, or the finish suffix when unset) so every
    print gets its own row.
    """

    series_code: str
    number: str
    language: str
    name: str
    rarity: Optional[str] = None
    finish: Finish = Finish.STANDARD
    attributes: Dict[str, Any] = field(default_factory=dict)
    image_url: Optional[str] = None
    image_missing: bool = False
    variant: Optional[str] = None

    @property
    def storage_number(self) -> str:
        suffix = self.finish.suffix if self.variant is None else self.variant
        return f"{self.number}{suffix}"

    @property
    def key(self) -> CardKey:
        return CardKey(
            series_code=self.series_code,
            number=self.storage_number,
            language=self.language,
        )

    @property
    def partition(self) -> Partition:
        return Partition(self.series_code, self.language)


@dataclass
class IngestionProgress:
    """Snapshot of a run, derived by replaying the progress log."""

    run_id: str
    started_at: str  # ISO timestamp
    updated_at: str
    total: int = 0
    processed: int = 0
    success: int = 0
    errors: int = 0
    current_partition: Optional[str] = None
    processed_keys: list[str] = field(default_factory=list)
    outcomes: dict[str, ItemOutcome] = field(default_factory=dict)

    def is_done(self, key: str) -> bool:
        """Errored keys are not done; only a success or a skip settles a key."""
        return self.outcomes.get(key) in (ItemOutcome.SUCCESS, ItemOutcome.SKIPPED)


@dataclass
class RunSummary:
    """Aggregate counters reported at the end of a run."""

    processed: int = 0
    success: int = 0
    errors: int = 0
    skipped: int = 0
    uploads: int = 0
    partitions_done: int = 0
    partitions_skipped: int = 0
    planned: int = 0
    aborted: bool = False

    @property
    def success_rate(self) -> float:
        if self.processed == 0:
            return 0.0
        return self.success / self.processed * 100.0

    @property
    def clean(self) -> bool:
        return not self.aborted and self.errors == 0 and self.processed >= self.planned
