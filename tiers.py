from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Sequence

from aggregation import MonthlyTotals


@dataclass(frozen=True)
class Tier:
    name: str
    categories: tuple[str, ...] = ()
    color: Optional[str] = None

    def to_dict(self) -> dict[str, object]:
        return {"name": self.name, "categories": list(self.categories), "color": self.color}


@dataclass(frozen=True)
class ReportSettings:
    tiers: tuple[Tier, ...] = field(default_factory=tuple)
    subcategory_depth: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "tiers": [t.to_dict() for t in self.tiers],
            "subcategory_depth": self.subcategory_depth,
        }


DEFAULT_TIERS = (
    Tier("Essential", ("Groceries", "Utilities", "Insurance", "Transport"), "#27ae60"),
    Tier("Discretionary", ("Entertainment", "Dining", "Shopping", "Hobbies"), "#e74c3c"),
    Tier("Fixed", ("Rent", "Subscriptions", "Phone"), "#3498db"),
)

DEFAULT_SETTINGS = ReportSettings(tiers=DEFAULT_TIERS, subcategory_depth=0)


def tier_of(category: str, tiers: Sequence[Tier]) -> Optional[Tier]:
    # TODO: reject categories claimed by more than one tier when settings are saved
    for tier in tiers:
        if category in tier.categories:
            return tier
    return None


def tier_name_for(category: str, tiers: Sequence[Tier]) -> str:
    tier = tier_of(category, tiers)
    return tier.name if tier else category


def find_tier(name: str, tiers: Sequence[Tier]) -> Optional[Tier]:
    for tier in tiers:
        if tier.name == name:
            return tier
    return None


def rollup(monthly: MonthlyTotals, tiers: Sequence[Tier]) -> dict[str, dict[str, Decimal]]:
    """Re-sum ``month -> category`` totals into ``tier -> month``.

    Categories outside every tier roll up under their own name.
    """
    out: dict[str, dict[str, Decimal]] = defaultdict(lambda: defaultdict(Decimal))
    for month, categories in monthly.items():
        for category, amount in categories.items():
            out[tier_name_for(category, tiers)][month] += amount
    return {name: dict(months) for name, months in out.items()}
