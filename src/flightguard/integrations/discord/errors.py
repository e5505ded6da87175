from __future__ import annotations

from typing import Optional

from ...core.exceptions import FlightguardError, PermanentError, TransientError


class DiscordError(FlightguardError):
    """Base error raised by Discord acknowledgement callables."""


class DiscordAPIError(DiscordError):
    """A Discord interaction callback request failed.

    ``retry_after`` carries the seconds Discord asked us to wait (the
    ``Retry-After`` header of a 429); retries honour it before backing off.
    """

    def __init__(self, message: str, *, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class DiscordTransientError(DiscordAPIError, TransientError):
    """Rate limited or network failure; the acknowledgement is retried."""


class DiscordPermanentError(DiscordAPIError, PermanentError):
    """Unknown interaction, expired token or invalid request; never retried."""
