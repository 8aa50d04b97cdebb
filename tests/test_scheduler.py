from datetime import date

import pytest

import config
from factories import FakeLedger, spend
from ledger import LedgerError
from scheduler import SchedulerManager
from services import DashboardService


@pytest.fixture
def manager(tmp_path, monkeypatch):
    monkeypatch.setenv("LEDGER_DATA_DIR", str(tmp_path))
    config.get_settings.cache_clear()
    ledger = FakeLedger([spend("2024-01-03", "Groceries", "80")])
    service = DashboardService(ledger, today=lambda: date(2024, 4, 15))
    yield SchedulerManager(service)
    config.get_settings.cache_clear()


def test_run_job_builds_snapshot(manager) -> None:
    manager._run_job("interval")
    assert manager.service.cache_status().has_snapshot is True


def test_run_job_keeps_serving_after_ledger_failure(manager) -> None:
    manager._run_job("startup")
    snapshot = manager.service.cache.current()

    manager.service.ledger.error = LedgerError("journal unreadable")
    manager._run_job("interval")

    assert manager.service.cache.current() is snapshot


def test_run_job_skips_when_rebuild_in_progress(manager) -> None:
    def busy(settings):
        manager._run_job("interval")
        return {}

    manager.service.cache.rebuild(busy)
    assert manager.service.cache_status().rebuild_in_progress is False
