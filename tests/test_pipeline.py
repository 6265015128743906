"""End-to-end pipeline tests against a scripted site and in-memory storage."""

import pytest

from conftest import (
    SITE,
    FakeAssetStorage,
    FakeContentStore,
    FakeFetcher,
    FakePage,
    card_hrefs,
    card_html,
    index_html,
)

from card_ingest.discovery import UrlDiscovery
from card_ingest.errors import ConfigError
from card_ingest.models import ItemOutcome
from card_ingest.pipeline import IngestOptions, IngestPipeline, compress_ranges
from card_ingest.sink import UpsertSink
from card_ingest.state import ProgressStore

INDEX = f"{SITE}/series/op13-successeurs"
OP13_FR = IngestOptions(series=["OP13"], languages=("fr",))


def _image(href: str) -> str:
    return f"https://static.opecards.fr/cards/fr/op13/{href.rsplit('/', 1)[-1]}.webp"


def _site(hrefs, per_page=24):
    chunks = [hrefs[i:i + per_page] for i in range(0, len(hrefs), per_page)]
    return [index_html(chunk, len(chunks)) for chunk in chunks]


def _page(count=100, fail=(), extra_hrefs=(), no_image=()):
    hrefs = card_hrefs("OP13", count) + list(extra_hrefs)
    items = {
        f"{SITE}{h}": card_html(None if h in no_image else _image(h), {"Couleur": "Rouge"})
        for h in hrefs
    }
    return FakePage(
        index={INDEX: _site(hrefs)},
        items=items,
        fail_urls={f"{SITE}{h}" for h in fail},
    )


def _item_visits(page):
    return [url for url in page.visited if "/cards/" in url]


class World:
    """Storage that outlives individual runs."""

    def __init__(self, tmp_path):
        self.store = FakeContentStore()
        self.assets = FakeAssetStorage()
        self.progress_file = str(tmp_path / "progress.jsonl")
        self.fetcher = None

    def pipeline(self, adapter, policy, with_sink=True):
        sink = None
        if with_sink:
            self.fetcher = FakeFetcher()
            sink = UpsertSink(self.store, self.assets, self.fetcher)
        return IngestPipeline(
            adapter,
            ProgressStore(self.progress_file),
            UrlDiscovery(adapter, policy),
            policy,
            sink=sink,
        )


@pytest.fixture
def world(tmp_path):
    return World(tmp_path)


async def test_full_run_is_clean(world, adapter, no_delays):
    page = _page(30)
    summary = await world.pipeline(adapter, no_delays).run(page, OP13_FR)

    assert summary.processed == 30
    assert summary.success == 30
    assert summary.uploads == 30
    assert summary.clean
    assert len(world.store.rows) == 30
    row = world.store.rows[("OP13", "001", "fr")]
    assert row["rarity"] == "common"
    assert row["attributes"]["colors"] == ["red"]
    assert row["image_url"] == "https://cdn.test/OP13/fr/001.webp"
    # a clean run leaves nothing to resume
    assert not ProgressStore(world.progress_file).path.exists()


async def test_resume_processes_only_remaining(world, adapter, no_delays):
    seed = ProgressStore(world.progress_file)
    seed.begin(total=100)
    for n in range(1, 41):
        seed.record(f"OP13:{n:03d}:fr", ItemOutcome.SUCCESS, "OP13-fr")

    page = _page(100)
    summary = await world.pipeline(adapter, no_delays).run(page, OP13_FR)

    visits = _item_visits(page)
    assert len(visits) == 60
    assert visits[0] == f"{SITE}/cards/op13-041-c-card-41"
    assert summary.processed == 60
    assert summary.planned == 60
    assert summary.clean


async def test_rerun_is_idempotent(world, adapter, no_delays):
    first = await world.pipeline(adapter, no_delays).run(_page(100), OP13_FR)
    assert first.uploads == 100

    second = await world.pipeline(adapter, no_delays).run(_page(100), OP13_FR)
    assert second.processed == 100
    assert second.uploads == 0
    assert world.fetcher.fetched == []
    assert len(world.store.rows) == 100
    assert len(world.assets.uploaded) == 100


async def test_failure_aborts_and_resume_retries(world, adapter, no_delays):
    failing = "/cards/op13-041-c-card-41"
    summary = await world.pipeline(adapter, no_delays).run(_page(100, fail=[failing]), OP13_FR)

    assert summary.aborted
    assert summary.success == 40
    assert summary.errors == 1
    assert len(world.store.rows) == 40
    progress = ProgressStore(world.progress_file)
    assert progress.summary()["errors"] == 1

    page = _page(100)
    resumed = await world.pipeline(adapter, no_delays).run(page, OP13_FR)
    assert resumed.processed == 60
    assert _item_visits(page)[0] == f"{SITE}{failing}"
    assert resumed.clean
    assert len(world.store.rows) == 100


async def test_continue_on_error(world, adapter, no_delays):
    fail = ["/cards/op13-005-c-card-5", "/cards/op13-010-c-card-10"]
    options = IngestOptions(series=["OP13"], languages=("fr",), continue_on_error=True)
    summary = await world.pipeline(adapter, no_delays).run(_page(30, fail=fail), options)

    assert not summary.aborted
    assert summary.processed == 30
    assert summary.errors == 2
    assert summary.success == 28
    assert not summary.clean
    assert ProgressStore(world.progress_file).path.exists()


async def test_errors_outlive_a_run_that_does_not_retry_them(world, adapter, no_delays):
    fail = ["/cards/op13-005-c-card-5"]
    options = IngestOptions(series=["OP13"], languages=("fr",), continue_on_error=True)
    await world.pipeline(adapter, no_delays).run(_page(30, fail=fail), options)

    still_failing = _page(30, fail=fail)
    again = await world.pipeline(adapter, no_delays).run(still_failing, options)
    assert _item_visits(still_failing) == [f"{SITE}/cards/op13-005-c-card-5"]
    assert again.errors == 1
    assert ProgressStore(world.progress_file).progress.errors == 1

    healed = _page(30)
    fixed = await world.pipeline(adapter, no_delays).run(healed, options)
    assert _item_visits(healed) == [f"{SITE}/cards/op13-005-c-card-5"]
    assert fixed.clean
    assert len(world.store.rows) == 30
    assert not ProgressStore(world.progress_file).path.exists()


async def test_clean_run_keeps_errors_from_other_partitions(world, adapter, no_delays):
    seed = ProgressStore(world.progress_file)
    seed.begin(total=1)
    seed.record("ST21:005:fr", ItemOutcome.ERROR, "ST21-fr", error="timed out")

    summary = await world.pipeline(adapter, no_delays).run(_page(5), OP13_FR)
    assert summary.clean
    progress = ProgressStore(world.progress_file)
    assert progress.path.exists()
    assert not progress.is_done("ST21:005:fr")


async def test_unexpected_item_error_is_recorded(world, adapter, no_delays):
    page = _page(5)
    crash_url = f"{SITE}/cards/op13-003-c-card-3"
    read_page = page.content

    async def content():
        if page.visited[-1] == crash_url:
            raise RuntimeError("renderer crashed")
        return await read_page()

    page.content = content
    options = IngestOptions(series=["OP13"], languages=("fr",), continue_on_error=True)
    summary = await world.pipeline(adapter, no_delays).run(page, options)

    assert not summary.aborted
    assert summary.processed == 5
    assert summary.errors == 1
    assert len(world.store.rows) == 4
    assert ProgressStore(world.progress_file).progress.outcomes["OP13:003:fr"] is ItemOutcome.ERROR


async def test_unexpected_item_error_aborts_without_continue(world, adapter, no_delays):
    page = _page(5)
    read_page = page.content

    async def content():
        if page.visited[-1].endswith("op13-002-c-card-2"):
            raise ValueError("bad markup")
        return await read_page()

    page.content = content
    summary = await world.pipeline(adapter, no_delays).run(page, OP13_FR)

    assert summary.aborted
    assert summary.success == 1
    assert summary.errors == 1


async def test_upload_failure_is_recorded(world, adapter, no_delays):
    world.assets.fail_keys = {"OP13/fr/003.webp"}
    options = IngestOptions(series=["OP13"], languages=("fr",), continue_on_error=True)
    summary = await world.pipeline(adapter, no_delays).run(_page(5), options)

    assert summary.errors == 1
    assert ("OP13", "003", "fr") not in world.store.rows
    assert ProgressStore(world.progress_file).progress.outcomes["OP13:003:fr"] is ItemOutcome.ERROR


async def test_dry_run_writes_nothing(world, adapter, no_delays):
    page = _page(50)
    options = IngestOptions(series=["OP13"], languages=("fr",), dry_run=True)
    summary = await world.pipeline(adapter, no_delays, with_sink=False).run(page, options)

    assert summary.planned == 50
    assert summary.processed == 0
    assert _item_visits(page) == []
    assert world.store.rows == {}
    assert not ProgressStore(world.progress_file).path.exists()


async def test_unavailable_partition_is_skipped(world, adapter, no_delays):
    options = IngestOptions(series=["OP13"], languages=("fr", "en"))
    summary = await world.pipeline(adapter, no_delays).run(_page(10), options)

    assert summary.partitions_skipped == 1
    assert summary.partitions_done == 1
    assert summary.processed == 10


async def test_limit_keeps_progress(world, adapter, no_delays):
    options = IngestOptions(series=["OP13"], languages=("fr",), limit=10)
    summary = await world.pipeline(adapter, no_delays).run(_page(30), options)

    assert summary.planned == 30
    assert summary.processed == 10
    assert not summary.clean
    assert ProgressStore(world.progress_file).summary()["processed"] == 10

    rest = await world.pipeline(adapter, no_delays).run(_page(30), OP13_FR)
    assert rest.processed == 20
    assert rest.clean


async def test_reprints_are_not_ingested(world, adapter, no_delays):
    page = _page(5, extra_hrefs=["/cards/op01-016-sr-nami"])
    summary = await world.pipeline(adapter, no_delays).run(page, OP13_FR)

    assert summary.processed == 5
    assert f"{SITE}/cards/op01-016-sr-nami" not in page.visited


async def test_alternate_print_gets_its_own_row(world, adapter, no_delays):
    page = _page(3, extra_hrefs=["/cards/op13-001-l-version-2-luffy"])
    await world.pipeline(adapter, no_delays).run(page, OP13_FR)

    assert ("OP13", "001-ALT", "fr") in world.store.rows
    assert "OP13/fr/001-ALT.webp" in world.assets.objects
    assert world.store.rows[("OP13", "001-ALT", "fr")]["finish"] == "alternate"


async def test_variant_prints_keep_separate_rows(world, adapter, no_delays):
    variants = [
        "/cards/op13-001-l-version-2-luffy",
        "/cards/op13-001-l-luffy-parallel",
        "/cards/op13-001-l-luffy-manga",
        "/cards/op13-001-l-luffy-box-topper",
    ]
    summary = await world.pipeline(adapter, no_delays).run(_page(3, extra_hrefs=variants), OP13_FR)

    assert summary.processed == 7
    numbers = {number for (_series, number, _lang) in world.store.rows}
    assert {"001", "001-ALT", "001-PR", "001-MG", "001-BT"} <= numbers
    assert "OP13/fr/001-PR.webp" in world.assets.objects


async def test_collection_partition_ingests_members(world, adapter, no_delays):
    index = f"{SITE}/series/en-prb01-one-piece-card-the-best"
    hrefs = [
        "/cards/en-op01-016-sr-prb01-nami",
        "/cards/en-op06-003-uc-prb01-emporio-ivankov",
        "/cards/en-prb01-001-l-sanji",
    ]
    page = FakePage(
        index={index: _site(hrefs)},
        items={f"{SITE}{h}": card_html() for h in hrefs},
    )
    options = IngestOptions(series=["PRB01"], languages=("en",))
    summary = await world.pipeline(adapter, no_delays).run(page, options)

    assert summary.processed == 3
    assert summary.clean
    assert set(world.store.rows) == {
        ("PRB01", "001", "en"),
        ("PRB01", "OP01-016", "en"),
        ("PRB01", "OP06-003", "en"),
    }
    assert world.store.rows[("PRB01", "OP01-016", "en")]["name"] == "Nami"


async def test_promo_partition_ingests_cards(world, adapter, no_delays):
    index = f"{SITE}/series/en-p-promo-cards"
    hrefs = ["/cards/en-p-008-p-yamato", "/cards/en-st13-001-l-sabo"]
    page = FakePage(
        index={index: _site(hrefs)},
        items={f"{SITE}{h}": card_html() for h in hrefs},
    )
    options = IngestOptions(series=["P"], languages=("en",))
    summary = await world.pipeline(adapter, no_delays).run(page, options)

    assert summary.processed == 2
    assert ("P", "008", "en") in world.store.rows
    assert ("P", "ST13-001", "en") in world.store.rows


async def test_missing_page_image_uses_fallback_url(world, adapter, no_delays):
    href = "/cards/op13-002-c-card-2"
    await world.pipeline(adapter, no_delays).run(_page(3, no_image=[href]), OP13_FR)

    fallback = [url for url in world.fetcher.fetched if "image-cartes-a-collectionner" in url]
    assert fallback == [
        "https://static.opecards.fr/cards/fr/op13/"
        "image-cartes-a-collectionner-one-piece-card-game-tcg-opecards-op13-002-c-card-2.webp"
    ]


async def test_skip_images(world, adapter, no_delays):
    options = IngestOptions(series=["OP13"], languages=("fr",), skip_images=True)
    summary = await world.pipeline(adapter, no_delays).run(_page(5), options)

    assert summary.success == 5
    assert world.fetcher.fetched == []
    assert all("image_url" not in row for row in world.store.rows.values())


async def test_missing_only(world, adapter, no_delays):
    await world.pipeline(adapter, no_delays).run(_page(30), OP13_FR)
    del world.assets.objects["OP13/fr/003.webp"]
    del world.assets.objects["OP13/fr/027.webp"]

    page = _page(30)
    options = IngestOptions(series=["OP13"], languages=("fr",), missing_only=True)
    summary = await world.pipeline(adapter, no_delays).run(page, options)

    assert summary.processed == 2
    assert summary.uploads == 2
    assert sorted(_item_visits(page)) == [
        f"{SITE}/cards/op13-003-c-card-3",
        f"{SITE}/cards/op13-027-c-card-27",
    ]


async def test_missing_only_needs_sink(world, adapter, no_delays):
    options = IngestOptions(series=["OP13"], languages=("fr",), missing_only=True, dry_run=True)
    with pytest.raises(ConfigError):
        await world.pipeline(adapter, no_delays, with_sink=False).run(_page(1), options)


async def test_real_run_needs_sink(world, adapter, no_delays):
    with pytest.raises(ConfigError):
        await world.pipeline(adapter, no_delays, with_sink=False).run(_page(1), OP13_FR)


def test_plan_partitions_skips_unpublished_languages(world, adapter, no_delays):
    pipeline = world.pipeline(adapter, no_delays)
    pairs = pipeline.plan_partitions(["op13", "ST05"], ("fr", "en", "jp"))
    assert [str(p) for _, p in pairs] == ["OP13-fr", "OP13-en", "OP13-jp", "ST05-en"]


def test_plan_partitions_unknown_series(world, adapter, no_delays):
    with pytest.raises(ConfigError, match="OP99"):
        world.pipeline(adapter, no_delays).plan_partitions(["OP13", "OP99"], ("fr",))


def test_compress_ranges():
    assert compress_ranges(["003", "001", "002", "005", "007-ALT"]) == "001-003, 005, 007-ALT"
    assert compress_ranges(["010"]) == "010"
    assert compress_ranges([]) == ""
