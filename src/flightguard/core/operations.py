"""Single-flight bookkeeping for operations keyed by (kind, subject, actor).

A ``SingleFlightGuard`` remembers which operations are currently running so
that a duplicate start for the same key (a second click on the same button by
the same user, an overlapping scheduler tick) can be declined instead of
running the downstream work twice.

The guard is advisory: it never waits and never times out. ``acquire`` and
``run`` are the supported way to hold a key because they release it on every
exit path of the guarded block.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Generic,
    Iterator,
    Optional,
    Set,
    TypeVar,
)

from .exceptions import InvalidOperationKeyError
from .logging_utils import log_event

T = TypeVar("T")

_KEY_SEPARATOR = ":"

SKIPPED_IN_FLIGHT = "in_flight"
SKIPPED_DISABLED = "disabled"


def _normalize_field(name: str, value: object) -> str:
    if value is None:
        raise InvalidOperationKeyError(f"{name} is required")
    token = str(value)
    if not token.strip():
        raise InvalidOperationKeyError(f"{name} must be non-empty")
    return token


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace(_KEY_SEPARATOR, "\\" + _KEY_SEPARATOR)


@dataclass(frozen=True)
class OperationKey:
    """Identity of one logical unit of work."""

    interaction_kind: str
    subject_id: str
    actor_id: str

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "interaction_kind",
            _normalize_field("interaction_kind", self.interaction_kind),
        )
        object.__setattr__(
            self, "subject_id", _normalize_field("subject_id", self.subject_id)
        )
        object.__setattr__(
            self, "actor_id", _normalize_field("actor_id", self.actor_id)
        )

    @property
    def canonical(self) -> str:
        """Delimiter-safe string identity; distinct keys never share one."""

        return _KEY_SEPARATOR.join(
            _escape(part)
            for part in (self.interaction_kind, self.subject_id, self.actor_id)
        )

    def __str__(self) -> str:
        return self.canonical


class FlightRegistry:
    """Set of in-flight keys shared by every handler holding this instance."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._keys: Set[OperationKey] = set()

    def contains(self, key: OperationKey) -> bool:
        with self._lock:
            return key in self._keys

    def add(self, key: OperationKey) -> None:
        with self._lock:
            self._keys.add(key)

    def discard(self, key: OperationKey) -> None:
        with self._lock:
            self._keys.discard(key)

    def try_add(self, key: OperationKey) -> bool:
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def clear(self) -> None:
        """Drop every key. Only for shutdown and test teardown."""

        with self._lock:
            self._keys.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, OperationKey):
            return False
        return self.contains(key)


@dataclass(frozen=True)
class FlightResult(Generic[T]):
    """Outcome of a guarded run.

    ``acquired`` is False when the work did not run; ``skipped_reason`` says why
    (``SKIPPED_IN_FLIGHT`` for duplicates, ``SKIPPED_DISABLED`` for disabled
    cron jobs).
    """

    acquired: bool
    value: Optional[T] = None
    skipped_reason: Optional[str] = None


class SingleFlightGuard:
    """Advisory mutual exclusion over ``OperationKey`` values."""

    def __init__(
        self,
        registry: Optional[FlightRegistry] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._registry = registry if registry is not None else FlightRegistry()
        self._logger = logger or logging.getLogger(__name__)

    @property
    def registry(self) -> FlightRegistry:
        return self._registry

    @property
    def in_flight_count(self) -> int:
        return len(self._registry)

    @staticmethod
    def key(
        interaction_kind: object, subject_id: object, actor_id: object
    ) -> OperationKey:
        return OperationKey(
            interaction_kind=interaction_kind,  # type: ignore[arg-type]
            subject_id=subject_id,  # type: ignore[arg-type]
            actor_id=actor_id,  # type: ignore[arg-type]
        )

    def is_in_flight(self, key: OperationKey) -> bool:
        return self._registry.contains(key)

    def begin(self, key: OperationKey) -> None:
        self._registry.add(key)
        log_event(self._logger, logging.DEBUG, "flight.begin", key=key.canonical)

    def end(self, key: OperationKey) -> None:
        self._registry.discard(key)
        log_event(self._logger, logging.DEBUG, "flight.end", key=key.canonical)

    def try_begin(self, key: OperationKey) -> bool:
        """Atomically mark ``key`` in flight; False when it already was."""

        acquired = self._registry.try_add(key)
        if acquired:
            log_event(self._logger, logging.DEBUG, "flight.begin", key=key.canonical)
        else:
            log_event(
                self._logger, logging.INFO, "flight.duplicate", key=key.canonical
            )
        return acquired

    @contextmanager
    def acquire(self, key: OperationKey) -> Iterator[bool]:
        """Hold ``key`` for the duration of the block.

        Yields True when this block owns the key and False when another
        operation already holds it. Only an owned key is released on exit, so
        a duplicate block never clears the original holder's mark.
        """

        acquired = self.try_begin(key)
        try:
            yield acquired
        finally:
            if acquired:
                self.end(key)

    def run(
        self, key: OperationKey, work: Callable[..., T], *args: Any, **kwargs: Any
    ) -> FlightResult[T]:
        with self.acquire(key) as acquired:
            if not acquired:
                return FlightResult(acquired=False, skipped_reason=SKIPPED_IN_FLIGHT)
            return FlightResult(acquired=True, value=work(*args, **kwargs))

    async def run_async(
        self,
        key: OperationKey,
        work: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> FlightResult[T]:
        with self.acquire(key) as acquired:
            if not acquired:
                return FlightResult(acquired=False, skipped_reason=SKIPPED_IN_FLIGHT)
            return FlightResult(acquired=True, value=await work(*args, **kwargs))


__all__ = [
    "SKIPPED_DISABLED",
    "SKIPPED_IN_FLIGHT",
    "FlightRegistry",
    "FlightResult",
    "OperationKey",
    "SingleFlightGuard",
]
