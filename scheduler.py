import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from ledger import LedgerError
from services import DashboardService
from snapshot import RebuildInProgress


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self, service: DashboardService) -> None:
        settings = get_settings()
        self.service = service
        self.interval_minutes = settings.refresh_interval_minutes
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_job(self, source: str = "manual") -> None:
        logger.info(f"scheduler_run: source={source}")
        try:
            snapshot = self.service.rebuild_cache()
        except RebuildInProgress:
            logger.info(f"scheduler_run: source={source} skipped=rebuild_in_progress")
            return
        except LedgerError as exc:
            # the previous snapshot keeps being served; next run tries again
            logger.warning(f"scheduler_run: source={source} failed={exc}")
            return
        logger.info(
            f"scheduler_run: source={source} "
            f"transactions={len(snapshot.transactions)} stale={snapshot.stale}"
        )

    def start(self) -> None:
        # warm-up runs in the scheduler thread so startup does not wait on hledger
        self.scheduler.add_job(
            self._run_job,
            args=["startup"],
            id="cache_warmup",
            replace_existing=True,
        )

        if self.interval_minutes > 0:
            trigger = IntervalTrigger(minutes=self.interval_minutes)
            self.scheduler.add_job(
                self._run_job,
                trigger,
                args=["interval"],
                id="cache_refresh",
                replace_existing=True,
                misfire_grace_time=300,
                coalesce=True,
                max_instances=1,
            )

        self.scheduler.start()
        logger.info(
            f"Scheduler started with cache refresh every {self.interval_minutes} minutes"
        )

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
