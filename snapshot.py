from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Optional

from tiers import ReportSettings

logger = logging.getLogger(__name__)


class RebuildInProgress(RuntimeError):
    """Another rebuild holds the cache; callers may treat this as pending."""


class CacheEmpty(LookupError):
    """No snapshot has been built yet; a refresh is required."""


@dataclass(frozen=True)
class CachedSnapshot:
    accounts: list = field(default_factory=list)
    transactions: list = field(default_factory=list)
    budget: list = field(default_factory=list)
    budget_history: list = field(default_factory=list)
    monthly_metrics: list = field(default_factory=list)
    category_spending: list = field(default_factory=list)
    net_worth_over_time: list = field(default_factory=list)
    category_trends: list = field(default_factory=list)
    year_over_year: list = field(default_factory=list)
    summary: dict = field(default_factory=dict)
    last_refresh: Optional[datetime] = None
    stale: bool = False

    def report(self, name: str) -> object:
        return getattr(self, name)


@dataclass(frozen=True)
class CacheStatus:
    has_snapshot: bool
    rebuild_in_progress: bool
    last_refresh: Optional[datetime]
    stale: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "has_snapshot": self.has_snapshot,
            "rebuild_in_progress": self.rebuild_in_progress,
            "last_refresh": self.last_refresh,
            "stale": self.stale,
            "needs_refresh": not self.has_snapshot,
        }


class SnapshotCache:
    """Holds the current snapshot and the settings the next rebuild will use.

    One lock guards the snapshot pointer, the rebuilding flag and the
    settings value. Readers only hold it long enough to copy the pointer;
    builds run outside it. Installed snapshots are never mutated: marking
    one stale swaps in a copy.
    """

    def __init__(self, settings: ReportSettings) -> None:
        self._lock = threading.Lock()
        self._snapshot: Optional[CachedSnapshot] = None
        self._settings = settings
        self._rebuilding = False

    @property
    def settings(self) -> ReportSettings:
        with self._lock:
            return self._settings

    def current(self) -> Optional[CachedSnapshot]:
        with self._lock:
            return self._snapshot

    def require(self) -> CachedSnapshot:
        snapshot = self.current()
        if snapshot is None:
            raise CacheEmpty("cache empty; refresh required")
        return snapshot

    def status(self) -> CacheStatus:
        with self._lock:
            snapshot = self._snapshot
            rebuilding = self._rebuilding
        if snapshot is None:
            return CacheStatus(False, rebuilding, None, False)
        return CacheStatus(True, rebuilding, snapshot.last_refresh, snapshot.stale)

    def apply_settings(self, settings: ReportSettings) -> None:
        marked = False
        with self._lock:
            self._settings = settings
            if self._snapshot is not None and not self._snapshot.stale:
                self._snapshot = replace(self._snapshot, stale=True)
                marked = True
        if marked:
            logger.info("cache_marked_stale: reason=settings_updated")

    def rebuild(self, build: Callable[[ReportSettings], dict[str, object]]) -> CachedSnapshot:
        """Run ``build`` with the current settings and install its result.

        Single-flight: raises ``RebuildInProgress`` straight away when another
        rebuild is running. If ``build`` raises, the previous snapshot stays.
        """
        with self._lock:
            if self._rebuilding:
                raise RebuildInProgress("refresh already in progress")
            self._rebuilding = True
            settings = self._settings

        try:
            started = datetime.now(timezone.utc)
            reports = build(settings)
            snapshot = CachedSnapshot(
                **reports, last_refresh=datetime.now(timezone.utc), stale=False
            )
            with self._lock:
                # settings changed mid-build: keep the result but flag it
                if self._settings is not settings:
                    snapshot = replace(snapshot, stale=True)
                self._snapshot = snapshot
            elapsed = (snapshot.last_refresh - started).total_seconds()
            logger.info(
                f"cache_rebuilt: stale={snapshot.stale} elapsed_secs={elapsed:.2f}"
            )
            return snapshot
        except Exception:
            logger.exception("cache_rebuild_failed")
            raise
        finally:
            with self._lock:
                self._rebuilding = False
