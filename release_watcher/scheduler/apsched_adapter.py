"""APScheduler wrapper driving the periodic auto-poll."""

from __future__ import annotations

from typing import Any, Callable

import structlog
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config.models import AppSettings

AUTO_POLL_JOB_ID = "auto-poll"


class APSchedulerAdapter:
    """Keep a single interval job in sync with the auto-poll settings."""

    def __init__(
        self,
        scheduler: BackgroundScheduler | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.scheduler = scheduler or BackgroundScheduler()
        self.logger = logger or structlog.get_logger("release_watcher.scheduler").bind(component="scheduler")
        self.started = False
        self._callback: Callable[[], Any] | None = None

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def bind(self, callback: Callable[[], Any]) -> None:
        """Set the function run on every auto-poll tick."""

        self._callback = callback

    def apply_settings(self, settings: AppSettings) -> None:
        if self._callback is None:
            raise RuntimeError("No auto-poll callback bound")
        if not settings.auto_poll_enabled:
            self.remove_auto_poll()
            return
        trigger = self._build_trigger(settings)
        self.scheduler.add_job(
            self._run_callback,
            trigger=trigger,
            id=AUTO_POLL_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info("auto_poll_scheduled", minutes=settings.auto_poll_minutes)

    def remove_auto_poll(self) -> None:
        try:
            self.scheduler.remove_job(AUTO_POLL_JOB_ID)
        except JobLookupError:
            return
        self.logger.info("auto_poll_removed")

    def _run_callback(self) -> None:
        try:
            self._callback()
        except Exception as exc:  # noqa: BLE001
            self.logger.error("auto_poll_failed", error=str(exc), exc_info=True)

    @staticmethod
    def _build_trigger(settings: AppSettings) -> IntervalTrigger:
        return IntervalTrigger(minutes=settings.auto_poll_minutes)

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["AUTO_POLL_JOB_ID", "APSchedulerAdapter"]
