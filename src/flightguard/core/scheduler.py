"""Run ``CronJob`` ticks on an APScheduler event-loop scheduler."""

from __future__ import annotations

import logging
from datetime import tzinfo
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from .config import CronJobConfig
from .cron import CronJob, build_cron_trigger, sort_cron_jobs
from .exceptions import ConfigError
from .logging_utils import log_event
from .operations import SingleFlightGuard


class CronScheduler:
    """Owns the cron jobs of one process and the guard their ticks share.

    Jobs are registered in ``run_order``. Each job ticks on its crontab
    pattern, once more at ``date`` when one is set, and once right after
    ``start`` when the job is triggered.
    """

    def __init__(
        self,
        guard: SingleFlightGuard,
        *,
        scheduler: Optional[AsyncIOScheduler] = None,
        timezone: Union[str, tzinfo, None] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._guard = guard
        if scheduler is None:
            scheduler = (
                AsyncIOScheduler(timezone=timezone)
                if timezone is not None
                else AsyncIOScheduler()
            )
        self._scheduler = scheduler
        self._logger = logger or logging.getLogger(__name__)
        self._jobs: list[CronJob] = []
        self._started = False

    @classmethod
    def from_config(
        cls,
        guard: SingleFlightGuard,
        jobs: Iterable[CronJobConfig],
        functions: Mapping[str, Callable[[], Any]],
        **kwargs: Any,
    ) -> "CronScheduler":
        """Build jobs from config entries, binding each to ``functions[name]``."""

        runner = cls(guard, **kwargs)
        for job_config in jobs:
            func = functions.get(job_config.name)
            if func is None:
                raise ConfigError(
                    f"cron job {job_config.name!r} has no registered function"
                )
            runner.add(job_config.build().set_function(func))
        return runner

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    @property
    def jobs(self) -> list[CronJob]:
        return sort_cron_jobs(self._jobs)

    def add(self, job: CronJob) -> "CronScheduler":
        if self._started:
            raise RuntimeError("cannot add cron jobs after start")
        if any(existing.name == job.name for existing in self._jobs):
            raise ValueError(f"duplicate cron job name: {job.name!r}")
        self._jobs.append(job)
        return self

    async def start(self) -> None:
        """Register every job, start the scheduler, then fire triggered jobs."""

        if self._started:
            return
        jobs = self.jobs
        timezone = getattr(self._scheduler, "timezone", None)
        for job in jobs:
            self._scheduler.add_job(
                job.tick,
                build_cron_trigger(job.pattern, timezone=timezone),
                args=[self._guard],
                id=job.name,
                name=job.name,
                replace_existing=True,
            )
            if job.date is not None:
                self._scheduler.add_job(
                    job.tick,
                    DateTrigger(run_date=job.date),
                    args=[self._guard],
                    id=f"{job.name}:date",
                    name=job.name,
                    replace_existing=True,
                )
            log_event(
                self._logger,
                logging.INFO,
                "cron.job.queued",
                job=job.name,
                pattern=job.pattern,
                run_order=job.run_order,
            )
        self._scheduler.start()
        self._started = True

        for job in jobs:
            if not await job.is_triggered():
                continue
            log_event(self._logger, logging.INFO, "cron.job.triggered", job=job.name)
            try:
                await job.tick(self._guard)
            except Exception as exc:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "cron.job.failed",
                    job=job.name,
                    exc=exc,
                )

    def shutdown(self, *, wait: bool = False) -> None:
        if not self._started:
            return
        self._scheduler.shutdown(wait=wait)
        self._started = False


__all__ = ["CronScheduler"]
