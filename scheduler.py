import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from cache import TTLCache
from config import get_settings


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self, cache: TTLCache) -> None:
        settings = get_settings()
        self.cache = cache
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_job(self, source: str = "manual") -> int:
        purged = self.cache.purge_expired()
        logger.info(f"cache_purge: source={source} entries_purged={purged}")
        return purged

    def start(self) -> None:
        trigger = IntervalTrigger(minutes=1)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["every_minute"],
            id="cache_purge",
            replace_existing=True,
            misfire_grace_time=30,
        )

        self.scheduler.start()
        logger.info("Scheduler started with a one-minute cache purge")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
