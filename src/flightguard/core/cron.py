"""Cron job definitions run under a single-flight guard."""

from __future__ import annotations

import inspect
import logging
from datetime import datetime, tzinfo
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from apscheduler.triggers.cron import CronTrigger

from .exceptions import InvalidCronPatternError
from .logging_utils import log_event
from .operations import (
    SKIPPED_DISABLED,
    SKIPPED_IN_FLIGHT,
    FlightResult,
    OperationKey,
    SingleFlightGuard,
)

DEFAULT_CRON_NAME = "cron"
DEFAULT_CRON_PATTERN = "* * * * *"
# Runs after services and before plugins.
DEFAULT_RUN_ORDER = -90
CRON_OPERATION_KIND = "cron"

Flag = Union[bool, Callable[[], Union[bool, Awaitable[bool]]]]
CronFunction = Callable[[], Any]

logger = logging.getLogger(__name__)


def build_cron_trigger(
    pattern: str, *, timezone: Union[str, tzinfo, None] = None
) -> CronTrigger:
    """Parse a five-field crontab pattern into an APScheduler trigger."""

    if not isinstance(pattern, str):
        raise TypeError("cron pattern must be a string")
    try:
        return CronTrigger.from_crontab(pattern, timezone=timezone)
    except ValueError as exc:
        raise InvalidCronPatternError(
            f"invalid cron pattern {pattern!r}: {exc}"
        ) from exc


def validate_cron_pattern(pattern: str) -> str:
    build_cron_trigger(pattern, timezone="UTC")
    return " ".join(pattern.split())


def _require_flag(name: str, value: object) -> None:
    if isinstance(value, bool) or callable(value):
        return
    raise TypeError(f"{name} must be a bool or a callable")


async def _resolve_flag(value: Flag) -> bool:
    if isinstance(value, bool):
        return value
    result = value()
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


def _not_implemented() -> Any:
    raise NotImplementedError("Function is not implemented.")


class CronJob:
    """Fluent configuration for one scheduled job.

    Setters validate their argument type and return the job so calls can be
    chained::

        job = CronJob("cat-facts").set_pattern("0 9 * * *").set_function(send)
    """

    def __init__(self, name: str = DEFAULT_CRON_NAME) -> None:
        if not isinstance(name, str) or not name.strip():
            raise TypeError("cron job name must be a non-empty string")
        self.name = name.strip()
        self.date: Optional[datetime] = None
        self.enabled: Flag = True
        self.triggered: Flag = False
        self.pattern = DEFAULT_CRON_PATTERN
        self.run_order: Union[int, float] = DEFAULT_RUN_ORDER
        self.func: CronFunction = _not_implemented

    def __repr__(self) -> str:
        return (
            f"CronJob(name={self.name!r}, pattern={self.pattern!r}, "
            f"run_order={self.run_order!r})"
        )

    def set_date(self, date: datetime) -> "CronJob":
        if not isinstance(date, datetime):
            raise TypeError("date must be a datetime")
        self.date = date
        return self

    def set_enabled(self, enabled: Flag = True) -> "CronJob":
        """Accepts a bool, or a sync/async callable evaluated at tick time."""

        _require_flag("enabled", enabled)
        self.enabled = enabled
        return self

    def set_function(self, func: CronFunction) -> "CronJob":
        if not callable(func):
            raise TypeError("func must be callable")
        self.func = func
        return self

    def set_pattern(self, pattern: str) -> "CronJob":
        self.pattern = validate_cron_pattern(pattern)
        return self

    def set_run_order(self, run_order: Union[int, float]) -> "CronJob":
        """Lower values run before higher values among jobs of the same tick."""

        if isinstance(run_order, bool) or not isinstance(run_order, (int, float)):
            raise TypeError("run_order must be a number")
        self.run_order = run_order
        return self

    def set_triggered(self, triggered: Flag = True) -> "CronJob":
        _require_flag("triggered", triggered)
        self.triggered = triggered
        return self

    async def is_enabled(self) -> bool:
        return await _resolve_flag(self.enabled)

    async def is_triggered(self) -> bool:
        return await _resolve_flag(self.triggered)

    def operation_key(self) -> OperationKey:
        return OperationKey(
            interaction_kind=CRON_OPERATION_KIND,
            subject_id=self.name,
            actor_id=self.pattern,
        )

    async def tick(self, guard: SingleFlightGuard) -> FlightResult[Any]:
        """Run the job once unless it is disabled or a previous tick is running."""

        if not await self.is_enabled():
            log_event(logger, logging.DEBUG, "cron.tick.disabled", job=self.name)
            return FlightResult(acquired=False, skipped_reason=SKIPPED_DISABLED)

        key = self.operation_key()
        with guard.acquire(key) as acquired:
            if not acquired:
                log_event(
                    logger,
                    logging.INFO,
                    "cron.tick.skipped",
                    job=self.name,
                    pattern=self.pattern,
                )
                return FlightResult(
                    acquired=False, skipped_reason=SKIPPED_IN_FLIGHT
                )
            log_event(logger, logging.INFO, "cron.tick.start", job=self.name)
            value = self.func()
            if inspect.isawaitable(value):
                value = await value
            log_event(logger, logging.INFO, "cron.tick.done", job=self.name)
            return FlightResult(acquired=True, value=value)


def sort_cron_jobs(jobs: Iterable[CronJob]) -> list[CronJob]:
    return sorted(jobs, key=lambda job: job.run_order)


__all__ = [
    "CronJob",
    "DEFAULT_CRON_PATTERN",
    "DEFAULT_RUN_ORDER",
    "sort_cron_jobs",
    "build_cron_trigger",
    "validate_cron_pattern",
]
