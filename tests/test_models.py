"""Tests for base data models."""

import pytest

from card_ingest.models import (
    CardKey,
    CardRecord,
    Finish,
    IngestionProgress,
    ItemOutcome,
    Partition,
    RunSummary,
    SeriesConfig,
)


def test_finish_suffixes():
    assert Finish.STANDARD.suffix == ""
    assert Finish.ALTERNATE.suffix == "-ALT"
    assert Finish.SPECIAL.suffix == "-SP"


def test_card_record_key():
    record = CardRecord(
        series_code="OP13",
        number="025",
        language="en",
        name="Nami",
        finish=Finish.ALTERNATE,
    )
    assert record.storage_number == "025-ALT"
    assert str(record.key) == "OP13:025-ALT:en"
    assert record.partition == Partition("OP13", "en")
    assert str(record.partition) == "OP13-en"


def test_variant_overrides_finish_suffix():
    record = CardRecord(
        series_code="OP13",
        number="001",
        language="fr",
        name="Luffy",
        finish=Finish.ALTERNATE,
        variant="-MG",
    )
    assert str(record.key) == "OP13:001-MG:fr"


def test_only_settled_outcomes_are_done():
    progress = IngestionProgress(run_id="r", started_at="t0", updated_at="t0")
    progress.outcomes = {
        "OP13:001:fr": ItemOutcome.SUCCESS,
        "OP13:002:fr": ItemOutcome.ERROR,
        "OP13:003:fr": ItemOutcome.SKIPPED,
    }
    assert progress.is_done("OP13:001:fr")
    assert not progress.is_done("OP13:002:fr")
    assert progress.is_done("OP13:003:fr")
    assert not progress.is_done("OP13:004:fr")


def test_card_key_parse():
    key = CardKey.parse("ST21:001-SP:fr")
    assert key == CardKey("ST21", "001-SP", "fr")
    with pytest.raises(ValueError):
        CardKey.parse("no-colons")


def test_series_availability():
    series = SeriesConfig(code="ST21", name="Gear 5", series_type="starter", languages=("fr", "en"))
    assert series.available_in("FR")
    assert not series.available_in("jp")


def test_run_summary_clean():
    assert RunSummary(processed=5, success=5, planned=5).clean
    assert not RunSummary(processed=5, success=4, errors=1, planned=5).clean
    assert not RunSummary(processed=3, success=3, planned=5).clean
    assert not RunSummary(aborted=True).clean
    assert RunSummary(processed=4, success=3, errors=1).success_rate == 75.0
    assert RunSummary().success_rate == 0.0
