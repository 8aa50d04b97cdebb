from __future__ import annotations

import logging
import threading
from datetime import date, datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from config import get_settings
from ledger import LedgerSource
from models import Preference, SpendingTier, SpendingTierCategory
from periods import DateBound
from reports import (
    ACCOUNT_REPORTS,
    SNAPSHOT_REPORTS,
    LedgerData,
    build,
    build_all,
    build_detail,
)
from schemas import SettingsIn, TierIn
from snapshot import CacheStatus, CachedSnapshot, SnapshotCache
from tiers import DEFAULT_SETTINGS, ReportSettings, Tier

logger = logging.getLogger(__name__)

SUBCATEGORY_DEPTH_KEY = "subcategory_depth"


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


class SettingsService:
    """Tier definitions and subcategory depth persisted in the database."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def _tiers(self) -> list[SpendingTier]:
        stmt = (
            select(SpendingTier)
            .options(selectinload(SpendingTier.categories))
            .order_by(SpendingTier.position, SpendingTier.id)
        )
        return list(self.session.scalars(stmt).all())

    def _get_tier(self, name: str) -> SpendingTier:
        tier = self.session.scalar(select(SpendingTier).where(SpendingTier.name == name))
        if not tier:
            raise ValueError("Tier not found")
        return tier

    def _depth(self) -> Optional[int]:
        pref = self.session.get(Preference, SUBCATEGORY_DEPTH_KEY)
        if pref is None:
            return None
        try:
            return max(int(pref.value), 0)
        except ValueError:
            logger.warning(f"settings_bad_preference: key={pref.key} value={pref.value!r}")
            return None

    def load(self) -> ReportSettings:
        rows = self._tiers()
        depth = self._depth()
        if not rows and depth is None:
            return DEFAULT_SETTINGS
        return ReportSettings(
            tiers=tuple(
                Tier(
                    name=row.name,
                    categories=tuple(c.category for c in row.categories),
                    color=row.color,
                )
                for row in rows
            ),
            subcategory_depth=depth or 0,
        )

    def _add_tier_row(self, data: TierIn, position: int) -> SpendingTier:
        row = SpendingTier(name=data.name, color=data.color, position=position)
        seen: set[str] = set()
        for category in data.categories:
            if category in seen:
                continue
            seen.add(category)
            row.categories.append(
                SpendingTierCategory(category=category, position=len(seen) - 1)
            )
        self.session.add(row)
        return row

    def save(self, data: SettingsIn) -> ReportSettings:
        self.session.execute(delete(SpendingTierCategory))
        self.session.execute(delete(SpendingTier))
        self.session.flush()
        for position, tier in enumerate(data.tiers):
            self._add_tier_row(tier, position)
        pref = self.session.get(Preference, SUBCATEGORY_DEPTH_KEY)
        if pref is None:
            pref = Preference(key=SUBCATEGORY_DEPTH_KEY, value="0")
            self.session.add(pref)
        pref.value = str(data.subcategory_depth)
        self.session.commit()
        return self.load()

    def create_tier(self, data: TierIn) -> ReportSettings:
        rows = self._tiers()
        if any(row.name == data.name for row in rows):
            raise ValueError("Tier already exists")
        if not rows and self._depth() is None:
            # first edit on defaults: persist them before adding to them
            self.save(SettingsIn.from_settings(DEFAULT_SETTINGS))
            rows = self._tiers()
        self._add_tier_row(data, len(rows))
        self.session.commit()
        return self.load()

    def delete_tier(self, name: str) -> ReportSettings:
        self.session.delete(self._get_tier(name))
        self.session.commit()
        return self.load()

    def add_category(self, tier_name: str, category: str) -> ReportSettings:
        tier = self._get_tier(tier_name)
        if any(c.category == category for c in tier.categories):
            raise ValueError("Category already exists in tier")
        tier.categories.append(
            SpendingTierCategory(category=category, position=len(tier.categories))
        )
        self.session.commit()
        return self.load()

    def remove_category(self, tier_name: str, category: str) -> ReportSettings:
        tier = self._get_tier(tier_name)
        match = next((c for c in tier.categories if c.category == category), None)
        if match is None:
            raise ValueError("Category not found in tier")
        tier.categories.remove(match)
        for position, remaining in enumerate(tier.categories):
            remaining.position = position
        self.session.commit()
        return self.load()


class DashboardService:
    """Serves every report either from the snapshot cache or from a bounded re-query.

    Without a bound, snapshot reports are read from the cache and the rest
    are computed from a fresh unbounded fetch. With a bound, the ledger is
    queried for ``[start, end)`` and the same builder runs on the result;
    the cache is not touched.
    """

    def __init__(
        self,
        ledger: LedgerSource,
        settings: ReportSettings = DEFAULT_SETTINGS,
        *,
        today: Callable[[], date] = local_today,
    ) -> None:
        self.ledger = ledger
        self.cache = SnapshotCache(settings)
        self.today = today
        self._settings_write = threading.Lock()

    @property
    def settings(self) -> ReportSettings:
        return self.cache.settings

    def _fetch(self, names, bound: Optional[DateBound]) -> LedgerData:
        names = set(names)
        accounts = ()
        transactions = ()
        if names & ACCOUNT_REPORTS:
            accounts = tuple(self.ledger.accounts(bound))
        if names - ACCOUNT_REPORTS:
            transactions = tuple(self.ledger.transactions(bound))
        return LedgerData(transactions=transactions, accounts=accounts)

    def _build_snapshot_reports(self, settings: ReportSettings) -> dict[str, object]:
        data = self._fetch(SNAPSHOT_REPORTS, None)
        return build_all(data, settings, self.today())

    def rebuild_cache(self) -> CachedSnapshot:
        return self.cache.rebuild(self._build_snapshot_reports)

    def cache_status(self) -> CacheStatus:
        return self.cache.status()

    def update_settings(self, settings: ReportSettings) -> None:
        self.cache.apply_settings(settings)

    def write_settings(self, write: Callable[[], ReportSettings]) -> ReportSettings:
        """Persist settings with ``write`` and apply what it returns.

        Writers are serialized; the cache holds the settings of the last
        committed write.
        """
        with self._settings_write:
            settings = write()
            self.cache.apply_settings(settings)
        return settings

    def report(self, name: str, bound: Optional[DateBound] = None) -> object:
        if bound is None and name in SNAPSHOT_REPORTS:
            return self.cache.require().report(name)
        settings = self.settings
        data = self._fetch([name], bound)
        if bound is not None:
            logger.info(
                f"filtered_report: name={name} start={bound.start} end={bound.end}"
            )
        return build(name, data, settings, self.today())

    def detail(
        self, kind: str, name: str, bound: Optional[DateBound] = None
    ) -> dict[str, object]:
        settings = self.settings
        data = LedgerData(
            transactions=tuple(self.ledger.transactions(bound)),
            account_names=tuple(self.ledger.account_names()),
        )
        return build_detail(kind, data, settings, self.today(), name)

    def accounts(self, bound: Optional[DateBound] = None):
        return self.report("accounts", bound)

    def transactions(self, bound: Optional[DateBound] = None):
        return self.report("transactions", bound)

    def summary(self, bound: Optional[DateBound] = None):
        return self.report("summary", bound)

    def budget(self, bound: Optional[DateBound] = None):
        return self.report("budget", bound)

    def budget_history(self, bound: Optional[DateBound] = None):
        return self.report("budget_history", bound)

    def monthly_metrics(self, bound: Optional[DateBound] = None):
        return self.report("monthly_metrics", bound)

    def category_spending(self, bound: Optional[DateBound] = None):
        return self.report("category_spending", bound)

    def income_breakdown(self, bound: Optional[DateBound] = None):
        return self.report("income_breakdown", bound)

    def income_history(self, bound: Optional[DateBound] = None):
        return self.report("income_history", bound)

    def net_worth_over_time(self, bound: Optional[DateBound] = None):
        return self.report("net_worth_over_time", bound)

    def category_trends(self, bound: Optional[DateBound] = None):
        return self.report("category_trends", bound)

    def year_over_year(self, bound: Optional[DateBound] = None):
        return self.report("year_over_year", bound)

    def category_detail(self, name: str, bound: Optional[DateBound] = None):
        return self.detail("category", name, bound)

    def tier_detail(self, name: str, bound: Optional[DateBound] = None):
        return self.detail("tier", name, bound)

    def account_detail(self, name: str, bound: Optional[DateBound] = None):
        return self.detail("account", name, bound)

    def income_detail(self, name: str, bound: Optional[DateBound] = None):
        return self.detail("income", name, bound)
