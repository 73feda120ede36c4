"""
Scheduled job tests: job registration and the all-customers runner.
"""
from contextlib import contextmanager

from marketplace_audit import scheduler as scheduler_module

from conftest import _run


def test_setup_registers_three_jobs():
    scheduler_module.setup_scheduler()
    try:
        jobs = {job.id: job for job in scheduler_module.scheduler.get_jobs()}
    finally:
        scheduler_module.scheduler.remove_all_jobs()

    assert set(jobs) == {"marketplace_main_sync", "marketplace_complete_sync", "marketplace_extended_sync"}
    assert jobs["marketplace_complete_sync"].trigger.interval.total_seconds() == 5 * 60
    assert jobs["marketplace_extended_sync"].trigger.interval.total_seconds() == 6 * 3600


def test_runner_syncs_every_active_customer(monkeypatch, db_session, sync_service, customer_factory):
    first = customer_factory("First")
    customer_factory("Paused", active=False)

    @contextmanager
    def _scope():
        yield db_session

    monkeypatch.setattr(scheduler_module, "session_scope", _scope)
    monkeypatch.setattr(scheduler_module, "MarketplaceSyncService", lambda db: sync_service)

    result = _run(scheduler_module.sync_complete())

    assert result["success"] is True
    assert result["sync_type"] == "complete"
    assert [r["customer_id"] for r in result["results"]] == [first.id]


def test_runner_reports_unexpected_errors(monkeypatch, db_session):
    class Exploding:
        def __init__(self, db):
            pass

        async def sync_all_customers(self, sync_type):
            raise RuntimeError("database unavailable")

    @contextmanager
    def _scope():
        yield db_session

    monkeypatch.setattr(scheduler_module, "session_scope", _scope)
    monkeypatch.setattr(scheduler_module, "MarketplaceSyncService", Exploding)

    result = _run(scheduler_module.sync_main())

    assert result == {"success": False, "sync_type": "main", "error": "database unavailable"}
