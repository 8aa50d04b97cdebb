from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable

from accounts import AccountKind
from amounts import ZERO, display_amount
from ledger import Transaction

MonthlyTotals = dict[str, dict[str, Decimal]]

_BALANCE_KINDS = frozenset({AccountKind.assets, AccountKind.liabilities})


def month_of(day: str) -> str:
    return day[:7]


def current_month(today: date) -> str:
    return f"{today.year:04d}-{today.month:02d}"


def monthly_totals(transactions: Iterable[Transaction], kind: AccountKind) -> MonthlyTotals:
    """``month -> category -> amount`` for postings of a single account kind."""
    totals: MonthlyTotals = defaultdict(lambda: defaultdict(Decimal))
    for tx in transactions:
        month = month_of(tx.date)
        for posting in tx.postings:
            if posting.account.kind is not kind:
                continue
            totals[month][posting.account.category] += display_amount(
                kind, posting.amount
            )
    return {month: dict(categories) for month, categories in totals.items()}


def category_totals(
    transactions: Iterable[Transaction], kind: AccountKind
) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for tx in transactions:
        for posting in tx.postings:
            if posting.account.kind is kind:
                totals[posting.account.category] += display_amount(kind, posting.amount)
    return dict(totals)


def income_and_expenses_by_month(
    transactions: Iterable[Transaction],
) -> dict[str, tuple[Decimal, Decimal]]:
    income: dict[str, Decimal] = defaultdict(Decimal)
    expenses: dict[str, Decimal] = defaultdict(Decimal)
    for tx in transactions:
        month = month_of(tx.date)
        for posting in tx.postings:
            kind = posting.account.kind
            if kind is AccountKind.income:
                income[month] += display_amount(kind, posting.amount)
            elif kind is AccountKind.expenses:
                expenses[month] += display_amount(kind, posting.amount)
    months = set(income) | set(expenses)
    return {m: (income[m], expenses[m]) for m in months}


def category_history(
    monthly: MonthlyTotals, *, exclude_month: str
) -> dict[str, list[Decimal]]:
    """Observed amounts per category, oldest month first, minus ``exclude_month``."""
    history: dict[str, list[Decimal]] = defaultdict(list)
    for month in sorted(monthly):
        if month == exclude_month:
            continue
        for category, amount in monthly[month].items():
            history[category].append(amount)
    return dict(history)


def net_worth_series(transactions: Iterable[Transaction]) -> list[tuple[str, Decimal]]:
    """Net worth after each date that has activity.

    Asset and liability balances are accumulated in date order. Dates without
    transactions are not interpolated, so the series only has observed dates.
    """
    totals: dict[AccountKind, Decimal] = defaultdict(Decimal)
    by_date: dict[str, Decimal] = {}
    for tx in sorted(transactions, key=lambda t: t.date):
        for posting in tx.postings:
            kind = posting.account.kind
            if kind in _BALANCE_KINDS:
                totals[kind] += posting.amount
        assets = totals[AccountKind.assets]
        liabilities = display_amount(
            AccountKind.liabilities, totals[AccountKind.liabilities]
        )
        by_date[tx.date] = assets - liabilities
    return sorted(by_date.items())


def running_balance(
    transactions: Iterable[Transaction], account: str
) -> list[tuple[str, Decimal]]:
    balance = ZERO
    by_date: dict[str, Decimal] = {}
    for tx in sorted(transactions, key=lambda t: t.date):
        touched = False
        for posting in tx.postings:
            if posting.account.name == account:
                balance += posting.amount
                touched = True
        if touched:
            by_date[tx.date] = balance
    return sorted(by_date.items())
