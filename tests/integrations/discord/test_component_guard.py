from __future__ import annotations

import asyncio
import logging
from typing import Any

import pytest

from flightguard.core.config import DiscordGuardConfig
from flightguard.core.operations import OperationKey, SingleFlightGuard
from flightguard.integrations.discord.component_guard import (
    STATUS_COMPLETED,
    STATUS_DUPLICATE,
    STATUS_FAILED,
    STATUS_INVALID,
    ComponentOperationGuard,
    build_deferred_update_payload,
)
from flightguard.integrations.discord.errors import (
    DiscordPermanentError,
    DiscordTransientError,
)


def _payload(
    interaction_id: str = "inter-1",
    *,
    user_id: str = "user-1",
    message_id: str = "msg-1",
    custom_id: str = "download_mp3",
) -> dict[str, Any]:
    return {
        "id": interaction_id,
        "token": f"token-{interaction_id}",
        "type": 3,
        "member": {"user": {"id": user_id}},
        "message": {"id": message_id},
        "data": {"custom_id": custom_id},
    }


class _Acknowledger:
    def __init__(self, failures: list[Exception] | None = None) -> None:
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self._failures = list(failures or [])

    async def __call__(
        self, interaction_id: str, token: str, payload: dict[str, Any]
    ) -> None:
        self.calls.append((interaction_id, token, payload))
        if self._failures:
            raise self._failures.pop(0)


def _component_guard(
    guard: SingleFlightGuard, ack: _Acknowledger, **kwargs: Any
) -> ComponentOperationGuard:
    kwargs.setdefault("ack_base_wait", 0)
    return ComponentOperationGuard(guard, ack, **kwargs)


def test_deferred_update_payload() -> None:
    assert build_deferred_update_payload() == {"type": 6}


@pytest.mark.anyio
async def test_handler_runs_and_key_is_released(guard: SingleFlightGuard) -> None:
    ack = _Acknowledger()
    component_guard = _component_guard(guard, ack)
    seen: list[OperationKey] = []

    async def handler(_payload: dict[str, Any], key: OperationKey) -> None:
        assert guard.is_in_flight(key) is True
        seen.append(key)

    result = await component_guard.handle(_payload(), handler)

    assert result.status == STATUS_COMPLETED
    assert result.key == OperationKey("download_mp3", "msg-1", "user-1")
    assert seen == [result.key]
    assert guard.in_flight_count == 0
    assert ack.calls == []


@pytest.mark.anyio
async def test_repeated_clicks_are_acknowledged_not_handled(
    guard: SingleFlightGuard, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO)
    ack = _Acknowledger()
    component_guard = _component_guard(guard, ack)
    release = asyncio.Event()
    entered = asyncio.Event()
    calls: list[str] = []

    async def handler(payload: dict[str, Any], _key: OperationKey) -> None:
        calls.append(payload["id"])
        entered.set()
        await release.wait()

    first = asyncio.create_task(component_guard.handle(_payload("inter-1"), handler))
    await entered.wait()
    second = await component_guard.handle(_payload("inter-2"), handler)
    release.set()
    first_result = await first

    assert first_result.status == STATUS_COMPLETED
    assert second.status == STATUS_DUPLICATE
    assert calls == ["inter-1"]
    assert ack.calls == [("inter-2", "token-inter-2", {"type": 6})]
    assert "discord.component.duplicate" in caplog.text

    third = await component_guard.handle(_payload("inter-3"), handler)
    assert third.status == STATUS_COMPLETED


@pytest.mark.anyio
async def test_other_users_are_not_blocked(guard: SingleFlightGuard) -> None:
    component_guard = _component_guard(guard, _Acknowledger())
    release = asyncio.Event()
    entered = asyncio.Event()

    async def slow(_payload: dict[str, Any], _key: OperationKey) -> None:
        entered.set()
        await release.wait()

    async def fast(_payload: dict[str, Any], _key: OperationKey) -> None:
        return None

    first = asyncio.create_task(component_guard.handle(_payload(), slow))
    await entered.wait()
    other_user = await component_guard.handle(_payload(user_id="user-2"), fast)
    other_message = await component_guard.handle(_payload(message_id="msg-2"), fast)
    release.set()
    await first

    assert other_user.status == STATUS_COMPLETED
    assert other_message.status == STATUS_COMPLETED


@pytest.mark.anyio
async def test_handler_failure_releases_key(
    guard: SingleFlightGuard, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.WARNING)
    component_guard = _component_guard(guard, _Acknowledger())

    async def handler(_payload: dict[str, Any], _key: OperationKey) -> None:
        raise RuntimeError("yt-dlp exited with code 1")

    result = await component_guard.handle(_payload(), handler)

    assert result.status == STATUS_FAILED
    assert isinstance(result.error, RuntimeError)
    assert guard.in_flight_count == 0
    assert "discord.component.failed" in caplog.text

    async def ok(_payload: dict[str, Any], _key: OperationKey) -> None:
        return None

    assert (await component_guard.handle(_payload(), ok)).status == STATUS_COMPLETED


@pytest.mark.anyio
async def test_payload_without_message_is_invalid(guard: SingleFlightGuard) -> None:
    component_guard = _component_guard(guard, _Acknowledger())
    payload = _payload()
    payload.pop("message")
    calls: list[str] = []

    async def handler(_payload: dict[str, Any], _key: OperationKey) -> None:
        calls.append("called")

    result = await component_guard.handle(payload, handler)
    assert result.status == STATUS_INVALID
    assert result.key is None
    assert calls == []


@pytest.mark.anyio
async def test_interaction_kind_override_groups_buttons(
    guard: SingleFlightGuard,
) -> None:
    ack = _Acknowledger()
    component_guard = _component_guard(guard, ack)
    guard.begin(OperationKey("DELETE_FROM_PLEX", "msg-1", "user-1"))

    async def handler(_payload: dict[str, Any], _key: OperationKey) -> None:
        return None

    result = await component_guard.handle(
        _payload(custom_id="confirm_delete"),
        handler,
        interaction_kind="DELETE_FROM_PLEX",
    )
    assert result.status == STATUS_DUPLICATE
    assert len(ack.calls) == 1


@pytest.mark.anyio
async def test_duplicate_ack_retries_transient_errors(guard: SingleFlightGuard) -> None:
    ack = _Acknowledger(failures=[DiscordTransientError("429")])
    component_guard = _component_guard(guard, ack, ack_max_attempts=3)
    key = OperationKey("download_mp3", "msg-1", "user-1")
    guard.begin(key)

    async def handler(_payload: dict[str, Any], _key: OperationKey) -> None:
        return None

    result = await component_guard.handle(_payload("inter-9"), handler)
    assert result.status == STATUS_DUPLICATE
    assert len(ack.calls) == 2
    assert guard.is_in_flight(key) is True


@pytest.mark.anyio
async def test_duplicate_ack_permanent_error_propagates(
    guard: SingleFlightGuard,
) -> None:
    ack = _Acknowledger(failures=[DiscordPermanentError("Unknown interaction")])
    component_guard = _component_guard(guard, ack, ack_max_attempts=3)
    key = OperationKey("download_mp3", "msg-1", "user-1")
    guard.begin(key)

    async def handler(_payload: dict[str, Any], _key: OperationKey) -> None:
        return None

    with pytest.raises(DiscordPermanentError):
        await component_guard.handle(_payload(), handler)
    assert len(ack.calls) == 1
    assert guard.is_in_flight(key) is True


@pytest.mark.anyio
async def test_duplicate_without_token_skips_ack(guard: SingleFlightGuard) -> None:
    ack = _Acknowledger()
    component_guard = _component_guard(guard, ack)
    guard.begin(OperationKey("download_mp3", "msg-1", "user-1"))
    payload = _payload()
    payload.pop("token")

    async def handler(_payload: dict[str, Any], _key: OperationKey) -> None:
        return None

    result = await component_guard.handle(payload, handler)
    assert result.status == STATUS_DUPLICATE
    assert ack.calls == []


@pytest.mark.anyio
async def test_from_config_applies_ack_attempts(guard: SingleFlightGuard) -> None:
    ack = _Acknowledger(failures=[DiscordTransientError("503")] * 2)
    component_guard = ComponentOperationGuard.from_config(
        DiscordGuardConfig(ack_max_attempts=2, ack_base_wait_seconds=0),
        guard,
        ack,
    )
    guard.begin(OperationKey("download_mp3", "msg-1", "user-1"))

    async def handler(_payload: dict[str, Any], _key: OperationKey) -> None:
        return None

    with pytest.raises(DiscordTransientError):
        await component_guard.handle(_payload(), handler)
    assert len(ack.calls) == 2
    assert component_guard.guard is guard


@pytest.mark.anyio
@pytest.mark.parametrize("interaction_type", [1, 2, 4, None])
async def test_non_component_interactions_are_invalid(
    guard: SingleFlightGuard, interaction_type: Any
) -> None:
    ack = _Acknowledger()
    component_guard = _component_guard(guard, ack)
    payload = _payload()
    payload["type"] = interaction_type
    calls: list[str] = []

    async def handler(_payload: dict[str, Any], _key: OperationKey) -> None:
        calls.append("called")

    result = await component_guard.handle(payload, handler)
    assert result.status == STATUS_INVALID
    assert calls == []
    assert ack.calls == []
    assert guard.in_flight_count == 0


@pytest.mark.anyio
async def test_modal_submit_is_guarded(guard: SingleFlightGuard) -> None:
    component_guard = _component_guard(guard, _Acknowledger())
    payload = _payload(custom_id="metadata_modal")
    payload["type"] = 5

    async def handler(_payload: dict[str, Any], _key: OperationKey) -> None:
        return None

    result = await component_guard.handle(payload, handler)
    assert result.status == STATUS_COMPLETED
    assert result.key == OperationKey("metadata_modal", "msg-1", "user-1")
