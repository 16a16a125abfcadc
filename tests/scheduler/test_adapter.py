from __future__ import annotations

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from release_watcher.config import AppSettings
from release_watcher.scheduler import APSchedulerAdapter
from release_watcher.scheduler.apsched_adapter import AUTO_POLL_JOB_ID


def test_build_trigger_uses_minutes() -> None:
    trigger = APSchedulerAdapter._build_trigger(AppSettings(auto_poll_minutes=45))
    assert isinstance(trigger, IntervalTrigger)
    assert trigger.interval.total_seconds() == 45 * 60


def test_apply_settings_requires_callback() -> None:
    adapter = APSchedulerAdapter()
    with pytest.raises(RuntimeError, match="callback"):
        adapter.apply_settings(AppSettings())


def test_apply_settings_adds_single_job() -> None:
    calls: list[dict] = []

    class StubScheduler:
        def add_job(self, callback, trigger, id, replace_existing, max_instances, coalesce):  # noqa: ANN001
            calls.append(
                {
                    "id": id,
                    "seconds": trigger.interval.total_seconds(),
                    "replace_existing": replace_existing,
                    "max_instances": max_instances,
                    "coalesce": coalesce,
                }
            )

    adapter = APSchedulerAdapter(scheduler=StubScheduler())
    adapter.bind(lambda: None)
    adapter.apply_settings(AppSettings(auto_poll_minutes=10))
    adapter.apply_settings(AppSettings(auto_poll_minutes=20))

    assert calls == [
        {"id": AUTO_POLL_JOB_ID, "seconds": 600, "replace_existing": True, "max_instances": 1, "coalesce": True},
        {"id": AUTO_POLL_JOB_ID, "seconds": 1200, "replace_existing": True, "max_instances": 1, "coalesce": True},
    ]


def test_disabling_removes_job() -> None:
    scheduler = BackgroundScheduler()
    adapter = APSchedulerAdapter(scheduler=scheduler)
    adapter.bind(lambda: None)
    adapter.start()
    try:
        adapter.apply_settings(AppSettings(auto_poll_minutes=15))
        jobs = adapter.list_jobs()
        assert [job["id"] for job in jobs] == [AUTO_POLL_JOB_ID]
        assert "0:15:00" in jobs[0]["trigger"]

        adapter.apply_settings(AppSettings(auto_poll_enabled=False))
        assert adapter.list_jobs() == []
        # Removing again is harmless.
        adapter.remove_auto_poll()
    finally:
        adapter.shutdown()


def test_callback_errors_are_contained() -> None:
    adapter = APSchedulerAdapter(scheduler=BackgroundScheduler())
    ran: list[bool] = []

    def failing() -> None:
        ran.append(True)
        raise RuntimeError("network down")

    adapter.bind(failing)
    adapter._run_callback()
    assert ran == [True]
