from __future__ import annotations


class FlightguardError(Exception):
    """Base error for flightguard."""

    recoverable: bool = False
    severity: str = "error"


class TransientError(FlightguardError):
    """Error that may succeed when retried (rate limits, network blips)."""

    recoverable = True
    severity = "warning"


class PermanentError(FlightguardError):
    """Error that will not succeed when retried."""

    recoverable = False
    severity = "error"


class ConfigError(FlightguardError):
    """Raised when configuration is missing or invalid."""


class InvalidOperationKeyError(FlightguardError, ValueError):
    """Raised when an operation key field is missing or blank."""


class InvalidCronPatternError(FlightguardError, ValueError):
    """Raised when a cron pattern cannot be parsed."""
