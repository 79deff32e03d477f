import asyncio
from unittest.mock import AsyncMock, patch

from src.fleet_journal.sync.scheduler import JournalSyncScheduler
from src.fleet_journal.sync.schemas import SyncReport


async def test_disabled_scheduler_registers_no_job(reconciler):
    scheduler = JournalSyncScheduler(reconciler, asyncio.get_running_loop(), 0)

    scheduler.run()

    assert scheduler._scheduler.jobs == []


async def test_scheduler_registers_interval_job(reconciler):
    scheduler = JournalSyncScheduler(reconciler, asyncio.get_running_loop(), 15)

    scheduler.run()
    try:
        assert len(scheduler._scheduler.jobs) == 1
        assert scheduler._scheduler.jobs[0].interval == 15
    finally:
        scheduler.stop()

    assert scheduler._scheduler.jobs == []


@patch("src.fleet_journal.sync.scheduler.sync_all_vehicles", new_callable=AsyncMock)
async def test_job_runs_sync_on_the_app_loop(mock_sync, reconciler):
    mock_sync.return_value = SyncReport()
    scheduler = JournalSyncScheduler(reconciler, asyncio.get_running_loop(), 15)

    scheduler.run_job()
    await asyncio.sleep(0.05)

    mock_sync.assert_awaited_once_with(reconciler)


@patch("src.fleet_journal.sync.scheduler.sync_all_vehicles", new_callable=AsyncMock)
async def test_failed_sync_does_not_stop_the_scheduler(mock_sync, reconciler):
    mock_sync.side_effect = RuntimeError("provider down")
    scheduler = JournalSyncScheduler(reconciler, asyncio.get_running_loop(), 15)

    await scheduler._sync_all()

    mock_sync.assert_awaited_once()
