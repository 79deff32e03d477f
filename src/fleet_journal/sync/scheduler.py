import asyncio
import logging
import threading
import time

import schedule

from src.fleet_journal.sync.reconciler import TripSyncReconciler, sync_all_vehicles

logger = logging.getLogger(__name__)


class JournalSyncScheduler:
    def __init__(
        self,
        reconciler: TripSyncReconciler,
        loop: asyncio.AbstractEventLoop,
        interval_minutes: int,
    ):
        self.reconciler = reconciler
        self.loop = loop
        self.interval_minutes = interval_minutes
        self._scheduler = schedule.Scheduler()
        self._stop = threading.Event()

    def run(self):
        if self.interval_minutes <= 0:
            logger.info("Trip sync scheduler disabled")
            return
        self._scheduler.every(self.interval_minutes).minutes.do(self.run_job)
        threading.Thread(target=self._schedule_loop, daemon=True).start()
        logger.info(f"Running trip sync every {self.interval_minutes} minutes")

    def stop(self):
        self._stop.set()
        self._scheduler.clear()

    def _schedule_loop(self):
        while not self._stop.is_set():
            self._scheduler.run_pending()
            time.sleep(1)

    def run_job(self):
        # Run the async sync on the application loop
        asyncio.run_coroutine_threadsafe(self._sync_all(), self.loop)

    async def _sync_all(self):
        logger.info("Starting scheduled trip sync")
        try:
            report = await sync_all_vehicles(self.reconciler)
            logger.info(f"Scheduled trip sync done: {report.summary}")
        except Exception as e:
            logger.error(f"Scheduled trip sync failed: {e}")
