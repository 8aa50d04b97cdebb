from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional


@dataclass(frozen=True)
class DateBound:
    """Half-open ``[start, end)`` range handed to the ledger as ``-b``/``-e``."""

    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end

    def hledger_args(self) -> list[str]:
        return ["-b", self.start.isoformat(), "-e", self.end.isoformat()]


def resolve_bound(start: Optional[str], end: Optional[str]) -> Optional[DateBound]:
    # Both ends are required; a lone start or end means "use the cache".
    if not start or not end:
        return None
    start_date = date.fromisoformat(start)
    end_date = date.fromisoformat(end)
    if start_date >= end_date:
        raise ValueError("Start date must be before end date")
    return DateBound(start_date, end_date)


def all_time_bound(first: date, last: date) -> DateBound:
    """Smallest bound covering every date from ``first`` to ``last`` inclusive."""
    return DateBound(first, last + timedelta(days=1))
