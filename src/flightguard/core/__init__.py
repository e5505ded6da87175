"""Core single-flight primitives, cron jobs and configuration."""

from .cron import (
    CronJob,
    build_cron_trigger,
    sort_cron_jobs,
    validate_cron_pattern,
)
from .exceptions import (
    ConfigError,
    FlightguardError,
    InvalidCronPatternError,
    InvalidOperationKeyError,
    PermanentError,
    TransientError,
)
from .operations import (
    SKIPPED_DISABLED,
    SKIPPED_IN_FLIGHT,
    FlightRegistry,
    FlightResult,
    OperationKey,
    SingleFlightGuard,
)
from .scheduler import CronScheduler

__all__ = [
    "SKIPPED_DISABLED",
    "SKIPPED_IN_FLIGHT",
    "ConfigError",
    "CronJob",
    "CronScheduler",
    "FlightRegistry",
    "FlightResult",
    "FlightguardError",
    "InvalidCronPatternError",
    "InvalidOperationKeyError",
    "OperationKey",
    "PermanentError",
    "SingleFlightGuard",
    "TransientError",
    "build_cron_trigger",
    "sort_cron_jobs",
    "validate_cron_pattern",
]
