from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Protocol

from accounts import ClassifiedAccount, classify
from amounts import ZERO, normalize_quantity
from periods import DateBound

logger = logging.getLogger(__name__)


class LedgerError(RuntimeError):
    """hledger could not be run or returned something we cannot read."""


@dataclass(frozen=True)
class Posting:
    account: ClassifiedAccount
    amount: Decimal
    comment: str = ""
    commodity: str = ""

    def to_dict(self) -> dict[str, object]:
        return {
            "account": self.account.name,
            "amount": self.amount,
            "commodity": self.commodity,
            "comment": self.comment,
        }


@dataclass(frozen=True)
class Transaction:
    date: str
    description: str
    postings: tuple[Posting, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.date,
            "description": self.description,
            "postings": [p.to_dict() for p in self.postings],
        }


@dataclass(frozen=True)
class Account:
    name: str
    balance: Decimal
    currency: str

    def to_dict(self) -> dict[str, object]:
        return {"name": self.name, "balance": self.balance, "currency": self.currency}


class LedgerSource(Protocol):
    def accounts(self, bound: Optional[DateBound] = None) -> list[Account]: ...

    def transactions(self, bound: Optional[DateBound] = None) -> list[Transaction]: ...

    def account_names(self) -> list[str]: ...


def _quantity(amount: dict[str, Any]) -> Decimal:
    quantity = amount["aquantity"]
    mantissa = quantity["decimalMantissa"]
    scale = quantity["decimalPlaces"]
    for value in (mantissa, scale):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise LedgerError(f"Unexpected quantity in hledger output: {quantity!r}")
        if isinstance(value, float) and not value.is_integer():
            raise LedgerError(f"Unexpected quantity in hledger output: {quantity!r}")
    if scale < 0:
        raise LedgerError(f"Negative decimal places in hledger output: {quantity!r}")
    return normalize_quantity(int(mantissa), int(scale))


def _first_amount(amounts: list[dict[str, Any]]) -> tuple[Decimal, str]:
    # Multi-commodity postings only contribute their first amount.
    if not amounts:
        return ZERO, ""
    first = amounts[0]
    if not isinstance(first, dict):
        raise LedgerError(f"Unexpected amount in hledger output: {first!r}")
    return _quantity(first), str(first.get("acommodity") or "")


def parse_transactions(payload: Any) -> list[Transaction]:
    if not isinstance(payload, list):
        raise LedgerError("Unexpected hledger print response")
    transactions: list[Transaction] = []
    try:
        for raw in payload:
            if not isinstance(raw, dict):
                raise LedgerError(f"Unexpected transaction in hledger output: {raw!r}")
            tx_date = str(raw["tdate"])
            if date.fromisoformat(tx_date).isoformat() != tx_date:
                raise LedgerError(f"Unexpected date in hledger output: {tx_date!r}")
            postings = []
            for raw_posting in raw["tpostings"]:
                if not isinstance(raw_posting, dict):
                    raise LedgerError(
                        f"Unexpected posting in hledger output: {raw_posting!r}"
                    )
                amount, commodity = _first_amount(raw_posting.get("pamount") or [])
                postings.append(
                    Posting(
                        account=classify(str(raw_posting["paccount"])),
                        amount=amount,
                        comment=str(raw_posting.get("pcomment") or "").strip(),
                        commodity=commodity,
                    )
                )
            transactions.append(
                Transaction(
                    date=tx_date,
                    description=str(raw.get("tdescription") or ""),
                    postings=tuple(postings),
                )
            )
    except LedgerError:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        raise LedgerError("Unexpected hledger print response") from exc
    transactions.sort(key=lambda tx: tx.date)
    return transactions


def parse_balances(payload: Any) -> list[Account]:
    # balance -O json is [rows, totals]; each row is [name, display, indent, amounts]
    if not isinstance(payload, list):
        raise LedgerError("Unexpected hledger balance response")
    if not payload:
        return []
    accounts: list[Account] = []
    try:
        for row in payload[0]:
            if not isinstance(row, list) or len(row) < 4:
                continue
            name = row[0]
            if not isinstance(name, str) or not name:
                continue
            balance, currency = _first_amount(row[3] or [])
            accounts.append(Account(name=name, balance=balance, currency=currency))
    except LedgerError:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        raise LedgerError("Unexpected hledger balance response") from exc
    return accounts


class HledgerClient:
    def __init__(
        self, journal_file: str, *, executable: str = "hledger", timeout: float = 60
    ) -> None:
        self.journal_file = journal_file
        self.executable = executable
        self.timeout = timeout

    def _run(self, *args: str) -> str:
        cmd = [self.executable, "-f", self.journal_file, *args]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=True,
            )
        except subprocess.CalledProcessError as exc:
            logger.error(
                f"hledger_failed: cmd={args[0]} file={self.journal_file} "
                f"returncode={exc.returncode} stderr={exc.stderr.strip()}"
            )
            raise LedgerError(f"hledger {args[0]} exited with {exc.returncode}") from exc
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.error(f"hledger_failed: cmd={args[0]} error={exc}")
            raise LedgerError(f"Failed to run hledger {args[0]}") from exc
        return result.stdout

    def _run_json(self, *args: str) -> Any:
        output = self._run(*args, "-O", "json")
        try:
            return json.loads(output)
        except json.JSONDecodeError as exc:
            logger.error(f"hledger_bad_json: cmd={args[0]} error={exc}")
            raise LedgerError(f"hledger {args[0]} returned invalid JSON") from exc

    @staticmethod
    def _bound_args(bound: Optional[DateBound]) -> list[str]:
        return bound.hledger_args() if bound else []

    def accounts(self, bound: Optional[DateBound] = None) -> list[Account]:
        payload = self._run_json("balance", "--empty", *self._bound_args(bound))
        return parse_balances(payload)

    def transactions(self, bound: Optional[DateBound] = None) -> list[Transaction]:
        payload = self._run_json("print", *self._bound_args(bound))
        return parse_transactions(payload)

    def account_names(self) -> list[str]:
        output = self._run("accounts")
        return [line.strip() for line in output.splitlines() if line.strip()]
