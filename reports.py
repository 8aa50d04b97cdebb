from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Optional

from accounts import AccountKind, classify, extract_subcategory
from aggregation import (
    MonthlyTotals,
    category_history,
    category_totals,
    current_month,
    income_and_expenses_by_month,
    monthly_totals,
    net_worth_series,
    running_balance,
)
from amounts import ZERO, display_amount, percent_of, round_money
from averaging import IQR_TRIM, THRESHOLD_TRIM, ThresholdTrim
from ledger import Account, Posting, Transaction
from tiers import ReportSettings, find_tier, rollup, tier_name_for, tier_of

MIN_HISTORY_MONTHS = 2
INCOME_PERIOD = "period"


class NotFound(LookupError):
    """A detail view was asked for an entity the ledger does not know."""


@dataclass(frozen=True)
class LedgerData:
    transactions: tuple[Transaction, ...] = ()
    accounts: tuple[Account, ...] = ()
    account_names: tuple[str, ...] = ()


Report = list[dict[str, object]]


def accounts_report(data: LedgerData, settings: ReportSettings, today: date) -> Report:
    return [account.to_dict() for account in data.accounts]


def transactions_report(data: LedgerData, settings: ReportSettings, today: date) -> Report:
    return [tx.to_dict() for tx in data.transactions]


def summary(data: LedgerData, settings: ReportSettings, today: date) -> dict[str, object]:
    total_assets = ZERO
    total_liabilities = ZERO
    for account in data.accounts:
        kind = classify(account.name).kind
        if kind is AccountKind.assets:
            total_assets += account.balance
        elif kind is AccountKind.liabilities:
            total_liabilities += display_amount(kind, account.balance)
    return {
        "total_assets": round_money(total_assets),
        "total_liabilities": round_money(total_liabilities),
        "net_worth": round_money(total_assets - total_liabilities),
    }


def budget_vs_actual(data: LedgerData, settings: ReportSettings, today: date) -> Report:
    """Current month spend against an IQR-trimmed historical average.

    Categories need at least two months of history before the current one.
    """
    monthly = monthly_totals(data.transactions, AccountKind.expenses)
    this_month = current_month(today)
    spent_now = monthly.get(this_month, {})
    history = category_history(monthly, exclude_month=this_month)

    items: Report = []
    for category in sorted(history):
        amounts = history[category]
        if len(amounts) < MIN_HISTORY_MONTHS:
            continue
        average = IQR_TRIM.apply(amounts).average
        spent = spent_now.get(category, ZERO)
        items.append(
            {
                "category": category,
                "tier": tier_name_for(category, settings.tiers),
                "month": this_month,
                "current": round_money(spent),
                "average": round_money(average),
                "remaining": round_money(average - spent),
                "percent_of_average": round_money(percent_of(spent, average)),
                "over_budget": spent > average,
                "history_months": len(amounts),
            }
        )
    return items


def _month_budget(month: str, amount: Decimal, average: Decimal) -> dict[str, object]:
    return {
        "month": month,
        "year": month[:4],
        "amount": round_money(amount),
        "percent_of_average": round_money(percent_of(amount, average)),
        "over_budget": amount > average,
    }


def history_items(
    monthly: MonthlyTotals, today: date, strategy: ThresholdTrim = THRESHOLD_TRIM
) -> Report:
    this_month = current_month(today)
    all_months = sorted(monthly)
    history = category_history(monthly, exclude_month=this_month)

    items: Report = []
    for category in sorted(history):
        amounts = history[category]
        if len(amounts) < MIN_HISTORY_MONTHS:
            continue
        result = strategy.apply(amounts)
        items.append(
            {
                "category": category,
                "average": round_money(result.mean),
                "average_excluding_extremes": round_money(result.average),
                "months": [
                    _month_budget(
                        month, monthly[month].get(category, ZERO), result.mean
                    )
                    for month in all_months
                ],
            }
        )
    return items


def budget_history(data: LedgerData, settings: ReportSettings, today: date) -> Report:
    monthly = monthly_totals(data.transactions, AccountKind.expenses)
    return history_items(monthly, today)


def income_history(data: LedgerData, settings: ReportSettings, today: date) -> Report:
    monthly = monthly_totals(data.transactions, AccountKind.income)
    return history_items(monthly, today)


def monthly_metrics(data: LedgerData, settings: ReportSettings, today: date) -> Report:
    by_month = income_and_expenses_by_month(data.transactions)
    metrics: Report = []
    for month in sorted(by_month):
        income, expenses = by_month[month]
        savings = income - expenses
        rate = savings / income * 100 if income > 0 else ZERO
        metrics.append(
            {
                "month": month,
                "income": round_money(income),
                "expenses": round_money(expenses),
                "savings": round_money(savings),
                "savings_rate": round_money(rate),
            }
        )
    return metrics


def category_spending(data: LedgerData, settings: ReportSettings, today: date) -> Report:
    monthly = monthly_totals(data.transactions, AccountKind.expenses)
    return [
        {"month": month, "category": category, "amount": round_money(amount)}
        for month in sorted(monthly)
        for category, amount in sorted(monthly[month].items())
    ]


def income_breakdown(data: LedgerData, settings: ReportSettings, today: date) -> Report:
    totals = category_totals(data.transactions, AccountKind.income)
    return [
        {"month": INCOME_PERIOD, "category": category, "amount": round_money(amount)}
        for category, amount in sorted(totals.items())
    ]


def net_worth_over_time(
    data: LedgerData, settings: ReportSettings, today: date
) -> Report:
    return [
        {"date": day, "net_worth": round_money(value)}
        for day, value in net_worth_series(data.transactions)
    ]


def category_trends(data: LedgerData, settings: ReportSettings, today: date) -> Report:
    monthly = monthly_totals(data.transactions, AccountKind.expenses)
    by_tier = rollup(monthly, settings.tiers)
    members: dict[str, set[str]] = defaultdict(set)
    for categories in monthly.values():
        for category in categories:
            members[tier_name_for(category, settings.tiers)].add(category)

    trends: Report = []
    for name in sorted(by_tier):
        tier = find_tier(name, settings.tiers)
        months = by_tier[name]
        trends.append(
            {
                "name": name,
                "color": tier.color if tier else None,
                "is_tier": tier is not None,
                "categories": sorted(members[name]),
                "data": [
                    {"month": month, "amount": round_money(months[month])}
                    for month in sorted(months)
                ],
            }
        )
    return trends


def year_over_year(data: LedgerData, settings: ReportSettings, today: date) -> Report:
    monthly = monthly_totals(data.transactions, AccountKind.expenses)
    pivot: dict[str, dict[str, Decimal]] = defaultdict(lambda: defaultdict(Decimal))
    for month, categories in monthly.items():
        if len(month) < 7:
            continue
        year, mm = month[:4], month[5:7]
        pivot[mm][year] += sum(categories.values(), ZERO)
    return [
        {
            "month": mm,
            "years": {
                year: round_money(amount) for year, amount in sorted(pivot[mm].items())
            },
        }
        for mm in sorted(pivot)
    ]


def _breakdown(totals: dict[str, Decimal]) -> Report:
    ordered = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    return [{"name": name, "amount": round_money(amount)} for name, amount in ordered]


def _known_categories(data: LedgerData, kind: AccountKind) -> set[str]:
    known = set()
    for name in data.account_names:
        account = classify(name)
        if account.kind is kind:
            known.add(account.category)
    for tx in data.transactions:
        for posting in tx.postings:
            if posting.account.kind is kind:
                known.add(posting.account.category)
    return known


def _matching(
    transactions: Iterable[Transaction], predicate: Callable[[Posting], bool]
) -> tuple[list[Transaction], list[Posting]]:
    matched_txs: list[Transaction] = []
    matched_postings: list[Posting] = []
    for tx in transactions:
        hits = [p for p in tx.postings if predicate(p)]
        if hits:
            matched_txs.append(tx)
            matched_postings.extend(hits)
    return matched_txs, matched_postings


def _subcategory_detail(
    data: LedgerData, settings: ReportSettings, kind: AccountKind, name: str
) -> tuple[list[Transaction], Report]:
    if name not in _known_categories(data, kind):
        raise NotFound(f"{kind.value} category {name!r} not found")
    txs, postings = _matching(
        data.transactions,
        lambda p: p.account.kind is kind and p.account.category == name,
    )
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for posting in postings:
        sub = extract_subcategory(posting.account, settings.subcategory_depth)
        totals[sub] += display_amount(kind, posting.amount)
    return txs, _breakdown(totals)


def category_detail(
    data: LedgerData, settings: ReportSettings, today: date, name: str
) -> dict[str, object]:
    txs, breakdown = _subcategory_detail(data, settings, AccountKind.expenses, name)
    history = [
        item for item in budget_history(data, settings, today) if item["category"] == name
    ]
    return {
        "category": name,
        "transactions": [tx.to_dict() for tx in txs],
        "budget_history": history,
        "breakdown": breakdown,
    }


def income_detail(
    data: LedgerData, settings: ReportSettings, today: date, name: str
) -> dict[str, object]:
    txs, breakdown = _subcategory_detail(data, settings, AccountKind.income, name)
    history = [
        item for item in income_history(data, settings, today) if item["category"] == name
    ]
    return {
        "category": name,
        "transactions": [tx.to_dict() for tx in txs],
        "income_history": history,
        "breakdown": breakdown,
    }


def tier_detail(
    data: LedgerData, settings: ReportSettings, today: date, name: str
) -> dict[str, object]:
    tier = find_tier(name, settings.tiers)
    if tier is None:
        raise NotFound(f"tier {name!r} not found")

    def in_tier(posting: Posting) -> bool:
        if posting.account.kind is not AccountKind.expenses:
            return False
        return tier_of(posting.account.category, settings.tiers) is tier

    txs, postings = _matching(data.transactions, in_tier)
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for posting in postings:
        totals[posting.account.category] += posting.amount
    history = [
        item
        for item in budget_history(data, settings, today)
        if tier_of(str(item["category"]), settings.tiers) is tier
    ]
    return {
        "tier": tier.name,
        "color": tier.color,
        "transactions": [tx.to_dict() for tx in txs],
        "budget_history": history,
        "breakdown": _breakdown(totals),
    }


def account_detail(
    data: LedgerData, settings: ReportSettings, today: date, name: str
) -> dict[str, object]:
    txs, _ = _matching(data.transactions, lambda p: p.account.name == name)
    if not txs and name not in data.account_names:
        raise NotFound(f"account {name!r} not found")
    kind = classify(name).kind
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for tx in txs:
        for posting in tx.postings:
            if posting.account.name == name:
                totals[tx.description] += display_amount(kind, posting.amount)
    return {
        "account": name,
        "transactions": [tx.to_dict() for tx in txs],
        "balance_history": [
            {"date": day, "balance": round_money(balance)}
            for day, balance in running_balance(txs, name)
        ],
        "breakdown": _breakdown(totals),
    }


Builder = Callable[[LedgerData, ReportSettings, date], object]
DetailBuilder = Callable[[LedgerData, ReportSettings, date, str], dict[str, object]]

REPORTS: dict[str, Builder] = {
    "accounts": accounts_report,
    "transactions": transactions_report,
    "summary": summary,
    "budget": budget_vs_actual,
    "budget_history": budget_history,
    "monthly_metrics": monthly_metrics,
    "category_spending": category_spending,
    "income_breakdown": income_breakdown,
    "income_history": income_history,
    "net_worth_over_time": net_worth_over_time,
    "category_trends": category_trends,
    "year_over_year": year_over_year,
}

DETAIL_REPORTS: dict[str, DetailBuilder] = {
    "category": category_detail,
    "tier": tier_detail,
    "account": account_detail,
    "income": income_detail,
}

SNAPSHOT_REPORTS = (
    "accounts",
    "transactions",
    "budget",
    "budget_history",
    "monthly_metrics",
    "category_spending",
    "net_worth_over_time",
    "category_trends",
    "year_over_year",
    "summary",
)

# Reports computed from the balance query rather than from transactions.
ACCOUNT_REPORTS = frozenset({"accounts", "summary"})


def build(
    name: str, data: LedgerData, settings: ReportSettings, today: date
) -> object:
    return REPORTS[name](data, settings, today)


def build_detail(
    kind: str,
    data: LedgerData,
    settings: ReportSettings,
    today: date,
    name: str,
) -> dict[str, object]:
    return DETAIL_REPORTS[kind](data, settings, today, name)


def build_all(
    data: LedgerData, settings: ReportSettings, today: date, names: Optional[Iterable[str]] = None
) -> dict[str, object]:
    return {name: build(name, data, settings, today) for name in names or SNAPSHOT_REPORTS}
