import threading
from datetime import date
from decimal import Decimal
from typing import Optional

from accounts import classify
from ledger import Account, Posting, Transaction
from periods import DateBound


def posting(account: str, amount: str, comment: str = "") -> Posting:
    return Posting(account=classify(account), amount=Decimal(amount), comment=comment)


def tx(day: str, description: str, *postings: Posting) -> Transaction:
    return Transaction(date=day, description=description, postings=tuple(postings))


def spend(day: str, category: str, amount: str, description: str = "Purchase") -> Transaction:
    return tx(
        day,
        description,
        posting(f"expenses:{category}", amount),
        posting("assets:checking", f"-{amount}"),
    )


def earn(day: str, source: str, amount: str, description: str = "Income") -> Transaction:
    return tx(
        day,
        description,
        posting("assets:checking", amount),
        posting(f"income:{source}", f"-{amount}"),
    )


class FakeLedger:
    """In-memory stand-in for hledger that honours ``[start, end)`` bounds."""

    def __init__(
        self,
        transactions: list[Transaction],
        accounts: Optional[list[Account]] = None,
        account_names: Optional[list[str]] = None,
    ) -> None:
        self._transactions = sorted(transactions, key=lambda t: t.date)
        self._accounts = accounts or []
        self._account_names = account_names
        self.calls: list[tuple[str, Optional[DateBound]]] = []
        self.block: Optional[threading.Event] = None
        self.entered = threading.Event()
        self.error: Optional[Exception] = None

    def transactions(self, bound: Optional[DateBound] = None) -> list[Transaction]:
        self.calls.append(("transactions", bound))
        self.entered.set()
        if self.block is not None:
            self.block.wait(timeout=5)
        if self.error is not None:
            raise self.error
        if bound is None:
            return list(self._transactions)
        return [
            t for t in self._transactions if bound.contains(date.fromisoformat(t.date))
        ]

    def accounts(self, bound: Optional[DateBound] = None) -> list[Account]:
        self.calls.append(("accounts", bound))
        if self.error is not None:
            raise self.error
        return list(self._accounts)

    def account_names(self) -> list[str]:
        self.calls.append(("account_names", None))
        if self._account_names is not None:
            return list(self._account_names)
        names = {p.account.name for t in self._transactions for p in t.postings}
        return sorted(names)
