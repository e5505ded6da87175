"""Guard Discord component and modal interactions against repeated clicks.

A user clicking the same button on the same message several times before the
first click finishes must not start the downstream work again. Duplicates are
acknowledged with a deferred update so Discord does not report "This
interaction failed" to the user, and the handler is not called.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ...core.config import (
    DEFAULT_ACK_BASE_WAIT_SECONDS,
    DEFAULT_ACK_MAX_ATTEMPTS,
    DiscordGuardConfig,
)
from ...core.logging_utils import log_event
from ...core.operations import OperationKey, SingleFlightGuard
from ...core.retry import retry_transient
from .constants import DISCORD_INTERACTION_CALLBACK_DEFERRED_UPDATE_MESSAGE
from .interactions import (
    extract_interaction_id,
    extract_interaction_token,
    is_component_interaction,
    is_modal_submit,
    operation_key_for_interaction,
)

STATUS_COMPLETED = "completed"
STATUS_DUPLICATE = "duplicate"
STATUS_FAILED = "failed"
STATUS_INVALID = "invalid"

InteractionAcknowledger = Callable[[str, str, dict[str, Any]], Awaitable[None]]
InteractionHandler = Callable[[dict[str, Any], OperationKey], Awaitable[None]]


def build_deferred_update_payload() -> dict[str, Any]:
    return {"type": DISCORD_INTERACTION_CALLBACK_DEFERRED_UPDATE_MESSAGE}


@dataclass(frozen=True)
class ComponentGuardResult:
    status: str
    key: Optional[OperationKey] = None
    error: Optional[BaseException] = None


class ComponentOperationGuard:
    """Runs interaction handlers at most once per (kind, message, user) at a time."""

    def __init__(
        self,
        guard: SingleFlightGuard,
        acknowledge: InteractionAcknowledger,
        *,
        logger: Optional[logging.Logger] = None,
        ack_max_attempts: int = DEFAULT_ACK_MAX_ATTEMPTS,
        ack_base_wait: float = DEFAULT_ACK_BASE_WAIT_SECONDS,
    ) -> None:
        self._guard = guard
        self._logger = logger or logging.getLogger(__name__)
        self._acknowledge = retry_transient(
            max_attempts=ack_max_attempts, base_wait=ack_base_wait
        )(acknowledge)

    @classmethod
    def from_config(
        cls,
        config: DiscordGuardConfig,
        guard: SingleFlightGuard,
        acknowledge: InteractionAcknowledger,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> "ComponentOperationGuard":
        return cls(
            guard,
            acknowledge,
            logger=logger,
            ack_max_attempts=config.ack_max_attempts,
            ack_base_wait=config.ack_base_wait_seconds,
        )

    @property
    def guard(self) -> SingleFlightGuard:
        return self._guard

    async def handle(
        self,
        interaction_payload: dict[str, Any],
        handler: InteractionHandler,
        *,
        interaction_kind: Optional[str] = None,
    ) -> ComponentGuardResult:
        interaction_id = extract_interaction_id(interaction_payload)
        key: Optional[OperationKey] = None
        if is_component_interaction(interaction_payload) or is_modal_submit(
            interaction_payload
        ):
            key = operation_key_for_interaction(
                interaction_payload, interaction_kind=interaction_kind
            )
        if key is None:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.component.invalid",
                interaction_id=interaction_id,
                interaction_type=interaction_payload.get("type"),
            )
            return ComponentGuardResult(status=STATUS_INVALID)

        with self._guard.acquire(key) as acquired:
            if not acquired:
                log_event(
                    self._logger,
                    logging.INFO,
                    "discord.component.duplicate",
                    key=key.canonical,
                    interaction_id=interaction_id,
                )
                await self._acknowledge_duplicate(interaction_payload)
                return ComponentGuardResult(status=STATUS_DUPLICATE, key=key)

            log_event(
                self._logger,
                logging.INFO,
                "discord.component.start",
                key=key.canonical,
                interaction_id=interaction_id,
            )
            try:
                await handler(interaction_payload, key)
            except Exception as exc:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "discord.component.failed",
                    key=key.canonical,
                    interaction_id=interaction_id,
                    exc=exc,
                )
                return ComponentGuardResult(status=STATUS_FAILED, key=key, error=exc)
            log_event(
                self._logger,
                logging.INFO,
                "discord.component.done",
                key=key.canonical,
                interaction_id=interaction_id,
            )
            return ComponentGuardResult(status=STATUS_COMPLETED, key=key)

    async def _acknowledge_duplicate(self, interaction_payload: dict[str, Any]) -> None:
        interaction_id = extract_interaction_id(interaction_payload)
        interaction_token = extract_interaction_token(interaction_payload)
        if not interaction_id or not interaction_token:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.component.ack_skipped",
                interaction_id=interaction_id,
                reason="missing_id_or_token",
            )
            return
        await self._acknowledge(
            interaction_id, interaction_token, build_deferred_update_payload()
        )


__all__ = [
    "ComponentGuardResult",
    "ComponentOperationGuard",
    "STATUS_COMPLETED",
    "STATUS_DUPLICATE",
    "STATUS_FAILED",
    "STATUS_INVALID",
    "build_deferred_update_payload",
]
