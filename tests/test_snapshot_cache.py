import logging
import threading
from datetime import date

import pytest

from factories import FakeLedger, spend
from ledger import LedgerError
from services import DashboardService
from snapshot import CacheEmpty, RebuildInProgress, SnapshotCache
from tiers import DEFAULT_SETTINGS, ReportSettings, Tier

TODAY = date(2024, 4, 15)


def _service(ledger: FakeLedger) -> DashboardService:
    return DashboardService(ledger, DEFAULT_SETTINGS, today=lambda: TODAY)


def _ledger() -> FakeLedger:
    return FakeLedger(
        [
            spend("2024-01-03", "Groceries", "80"),
            spend("2024-02-03", "Groceries", "90"),
            spend("2024-03-03", "Groceries", "100"),
        ]
    )


def test_empty_cache_reports_needs_refresh() -> None:
    service = _service(_ledger())
    status = service.cache_status()
    assert status.has_snapshot is False
    assert status.to_dict()["needs_refresh"] is True
    with pytest.raises(CacheEmpty):
        service.category_spending()


def test_concurrent_rebuilds_are_single_flight() -> None:
    ledger = _ledger()
    ledger.block = threading.Event()
    service = _service(ledger)
    outcomes: list[str] = []

    def first() -> None:
        service.rebuild_cache()
        outcomes.append("rebuilt")

    worker = threading.Thread(target=first)
    worker.start()
    assert ledger.entered.wait(timeout=5)
    assert service.cache_status().rebuild_in_progress is True

    with pytest.raises(RebuildInProgress):
        service.rebuild_cache()
    outcomes.append("in_progress")

    ledger.block.set()
    worker.join(timeout=5)

    assert sorted(outcomes) == ["in_progress", "rebuilt"]
    status = service.cache_status()
    assert status.has_snapshot is True
    assert status.stale is False
    assert status.rebuild_in_progress is False


def test_readers_see_previous_snapshot_while_rebuilding() -> None:
    ledger = _ledger()
    service = _service(ledger)
    before = service.rebuild_cache()

    ledger.block = threading.Event()
    ledger.entered.clear()
    worker = threading.Thread(target=service.rebuild_cache)
    worker.start()
    assert ledger.entered.wait(timeout=5)

    assert service.cache.current() is before
    assert service.category_spending() == before.category_spending

    ledger.block.set()
    worker.join(timeout=5)
    assert service.cache.current() is not before


def test_settings_update_marks_stale_without_discarding() -> None:
    service = _service(_ledger())
    service.rebuild_cache()
    trends_before = service.category_trends()

    service.update_settings(
        ReportSettings(tiers=(Tier("Food", ("Groceries",), "#000000"),))
    )

    status = service.cache_status()
    assert status.has_snapshot is True
    assert status.stale is True
    assert service.category_trends() == trends_before

    service.rebuild_cache()
    assert service.cache_status().stale is False
    assert [t["name"] for t in service.category_trends()] == ["Food"]


def test_failed_rebuild_keeps_old_snapshot() -> None:
    ledger = _ledger()
    service = _service(ledger)
    snapshot = service.rebuild_cache()

    ledger.error = LedgerError("hledger exited with 1")
    with pytest.raises(LedgerError):
        service.rebuild_cache()

    assert service.cache.current() is snapshot
    assert service.cache_status().rebuild_in_progress is False


def test_failed_first_rebuild_leaves_cache_empty() -> None:
    ledger = _ledger()
    ledger.error = LedgerError("boom")
    service = _service(ledger)
    with pytest.raises(LedgerError):
        service.rebuild_cache()
    assert service.cache_status().has_snapshot is False


def test_settings_applied_mid_rebuild_leave_result_stale() -> None:
    cache = SnapshotCache(DEFAULT_SETTINGS)
    replacement = ReportSettings(subcategory_depth=2)
    seen: list[ReportSettings] = []

    def build(settings: ReportSettings) -> dict[str, object]:
        seen.append(settings)
        cache.apply_settings(replacement)
        return {}

    snapshot = cache.rebuild(build)

    assert seen == [DEFAULT_SETTINGS]
    assert snapshot.stale is True
    assert cache.settings is replacement


def test_settings_on_empty_cache_are_not_logged_as_stale(caplog) -> None:
    cache = SnapshotCache(DEFAULT_SETTINGS)

    with caplog.at_level(logging.INFO, logger="snapshot"):
        cache.apply_settings(ReportSettings(subcategory_depth=1))
        assert "cache_marked_stale" not in caplog.text

        cache.rebuild(lambda settings: {})
        cache.apply_settings(ReportSettings(subcategory_depth=2))
        cache.apply_settings(ReportSettings(subcategory_depth=3))

    assert caplog.text.count("cache_marked_stale") == 1
