import threading
from datetime import date
from decimal import Decimal

import pytest

from factories import FakeLedger, earn, posting, spend, tx
from ledger import Account
from periods import DateBound, all_time_bound, resolve_bound
from reports import NotFound
from services import DashboardService
from tiers import DEFAULT_SETTINGS, ReportSettings

TODAY = date(2024, 4, 15)


def _ledger() -> FakeLedger:
    return FakeLedger(
        [
            spend("2024-01-03", "Groceries", "80.10"),
            spend("2024-01-09", "Dining", "25"),
            spend("2024-02-03", "Groceries", "90"),
            spend("2024-03-03", "Groceries", "100"),
            spend("2024-04-01", "Groceries", "40"),
            earn("2024-01-31", "salary", "3000"),
            earn("2024-02-29", "salary", "3000"),
            tx("2024-03-10", "Card", posting("liabilities:card", "-30")),
        ],
        accounts=[
            Account("assets:checking", Decimal("5634.90"), "$"),
            Account("liabilities:card", Decimal("-30"), "$"),
        ],
    )


def _service(ledger: FakeLedger) -> DashboardService:
    return DashboardService(ledger, DEFAULT_SETTINGS, today=lambda: TODAY)


def _triples(report) -> set[tuple[str, str, Decimal]]:
    return {(r["month"], r["category"], r["amount"]) for r in report}


def test_filtered_all_time_matches_cached_category_spending() -> None:
    service = _service(_ledger())
    service.rebuild_cache()

    cached = service.category_spending()
    bound = all_time_bound(date(2024, 1, 3), date(2024, 4, 1))
    filtered = service.category_spending(bound)

    assert _triples(filtered) == _triples(cached)


@pytest.mark.parametrize(
    "name",
    [
        "budget",
        "budget_history",
        "monthly_metrics",
        "net_worth_over_time",
        "category_trends",
        "year_over_year",
        "transactions",
        "summary",
    ],
)
def test_filtered_all_time_matches_cached_reports(name: str) -> None:
    service = _service(_ledger())
    service.rebuild_cache()
    bound = all_time_bound(date(2024, 1, 3), date(2024, 4, 1))
    assert service.report(name, bound) == service.report(name)


def test_filtered_path_never_touches_cache() -> None:
    ledger = _ledger()
    service = _service(ledger)

    report = service.category_spending(DateBound(date(2024, 2, 1), date(2024, 3, 1)))

    assert _triples(report) == {("2024-02", "Groceries", Decimal("90.00"))}
    assert service.cache_status().has_snapshot is False
    assert ledger.calls == [
        ("transactions", DateBound(date(2024, 2, 1), date(2024, 3, 1)))
    ]


def test_end_date_is_exclusive() -> None:
    service = _service(_ledger())
    bound = DateBound(date(2024, 1, 3), date(2024, 1, 9))
    report = service.category_spending(bound)
    assert _triples(report) == {("2024-01", "Groceries", Decimal("80.10"))}


def test_cached_reads_do_not_hit_the_ledger() -> None:
    ledger = _ledger()
    service = _service(ledger)
    service.rebuild_cache()
    calls_after_rebuild = list(ledger.calls)

    service.budget()
    service.summary()
    service.year_over_year()

    assert ledger.calls == calls_after_rebuild


def test_uncached_reports_fetch_fresh_without_bound() -> None:
    ledger = _ledger()
    service = _service(ledger)

    breakdown = service.income_breakdown()

    assert breakdown == [
        {"month": "period", "category": "salary", "amount": Decimal("6000.00")}
    ]
    assert ledger.calls == [("transactions", None)]
    assert service.cache_status().has_snapshot is False


def test_detail_views_check_names_against_full_account_list() -> None:
    ledger = _ledger()
    service = _service(ledger)
    bound = DateBound(date(2024, 4, 2), date(2024, 5, 1))

    detail = service.category_detail("Dining", bound)
    assert detail["transactions"] == []

    with pytest.raises(NotFound):
        service.category_detail("Yachts", bound)
    with pytest.raises(NotFound):
        service.tier_detail("Nope")
    assert service.tier_detail("Essential")["breakdown"][0]["name"] == "Groceries"


def test_resolve_bound_requires_both_dates() -> None:
    assert resolve_bound("2024-01-01", None) is None
    assert resolve_bound(None, None) is None
    assert resolve_bound("2024-01-01", "2024-02-01") == DateBound(
        date(2024, 1, 1), date(2024, 2, 1)
    )
    with pytest.raises(ValueError):
        resolve_bound("2024-02-01", "2024-01-01")


def test_settings_writes_apply_in_commit_order() -> None:
    service = _service(_ledger())
    first_entered = threading.Event()
    release_first = threading.Event()
    writes: list[str] = []
    first = ReportSettings(subcategory_depth=1)
    second = ReportSettings(subcategory_depth=2)

    def write_first() -> ReportSettings:
        writes.append("first")
        first_entered.set()
        release_first.wait(timeout=5)
        return first

    def write_second() -> ReportSettings:
        writes.append("second")
        return second

    a = threading.Thread(target=service.write_settings, args=(write_first,))
    a.start()
    assert first_entered.wait(timeout=5)
    b = threading.Thread(target=service.write_settings, args=(write_second,))
    b.start()
    b.join(timeout=0.2)

    assert writes == ["first"]
    assert b.is_alive()

    release_first.set()
    a.join(timeout=5)
    b.join(timeout=5)

    assert writes == ["first", "second"]
    assert service.settings is second
