"""
Background sweep of the financial summary cache.

Runs on an interval (``FINANCIAL_CACHE_SWEEP_SECONDS``) and evicts expired
entries so memory does not grow with every distinct period queried.
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore

from core.config import FINANCIAL_CACHE_SWEEP_SECONDS
from services.cache_service import TTLCache
from utils.datetime_utils import CLINIC_TZ

logger = logging.getLogger(__name__)

# Global singleton instance
_cache_sweep_scheduler: Optional['CacheSweepScheduler'] = None


class CacheSweepScheduler:
    """Scheduler that periodically sweeps one TTLCache."""

    def __init__(self, cache: TTLCache, interval_seconds: int = FINANCIAL_CACHE_SWEEP_SECONDS):
        self.cache = cache
        self.interval_seconds = interval_seconds
        self.scheduler = AsyncIOScheduler(timezone=CLINIC_TZ)
        self._is_started = False

    @property
    def is_running(self) -> bool:
        return self._is_started

    async def start_scheduler(self) -> None:
        """
        Start the sweep job.

        This should be called during application startup.
        """
        if self._is_started:
            logger.warning("Cache sweep scheduler is already started")
            return

        self.scheduler.add_job(  # type: ignore
            self._run_sweep,
            IntervalTrigger(seconds=self.interval_seconds),
            id="financial_cache_sweep",
            name="Financial cache sweep",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        self._is_started = True
        logger.info(f"Cache sweep scheduler started (every {self.interval_seconds}s)")

    async def stop_scheduler(self) -> None:
        """
        Stop the sweep job.

        This should be called during application shutdown.
        """
        if self._is_started:
            self.scheduler.shutdown(wait=False)
            self._is_started = False
            logger.info("Cache sweep scheduler stopped")

    async def _run_sweep(self) -> None:
        try:
            evicted = self.cache.sweep()
            logger.debug(f"Cache sweep finished, {evicted} entries evicted")
        except Exception as e:
            logger.exception(f"Error during cache sweep: {e}")
            # Don't re-raise - allow scheduler to continue


def get_cache_sweep_scheduler(cache: TTLCache) -> CacheSweepScheduler:
    """
    Get the global sweep scheduler, creating it for ``cache`` on first use.
    """
    global _cache_sweep_scheduler
    if _cache_sweep_scheduler is None:
        _cache_sweep_scheduler = CacheSweepScheduler(cache)
    return _cache_sweep_scheduler


async def start_cache_sweep_scheduler(cache: TTLCache) -> None:
    """
    Start the global cache sweep scheduler.

    This should be called during application startup.
    """
    scheduler = get_cache_sweep_scheduler(cache)
    await scheduler.start_scheduler()


async def stop_cache_sweep_scheduler() -> None:
    """
    Stop the global cache sweep scheduler.

    This should be called during application shutdown.
    """
    global _cache_sweep_scheduler
    if _cache_sweep_scheduler:
        await _cache_sweep_scheduler.stop_scheduler()
        _cache_sweep_scheduler = None
