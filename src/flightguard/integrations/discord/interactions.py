from __future__ import annotations

from typing import Any, Optional

from ...core.operations import OperationKey
from .constants import (
    DISCORD_INTERACTION_TYPE_COMPONENT,
    DISCORD_INTERACTION_TYPE_MODAL_SUBMIT,
)


def _as_id(value: object) -> str | None:
    if value is None:
        return None
    token = str(value).strip()
    return token or None


def extract_interaction_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("id"))


def extract_interaction_token(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("token"))


def extract_user_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    member = interaction_payload.get("member")
    if isinstance(member, dict):
        member_user = member.get("user")
        if isinstance(member_user, dict):
            user_id = _as_id(member_user.get("id"))
            if user_id:
                return user_id
    user = interaction_payload.get("user")
    if isinstance(user, dict):
        return _as_id(user.get("id"))
    return None


def extract_message_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    """Id of the message the clicked component (or modal opener) belongs to."""

    message = interaction_payload.get("message")
    if not isinstance(message, dict):
        return None
    return _as_id(message.get("id"))


def is_component_interaction(interaction_payload: dict[str, Any]) -> bool:
    return interaction_payload.get("type") == DISCORD_INTERACTION_TYPE_COMPONENT


def is_modal_submit(interaction_payload: dict[str, Any]) -> bool:
    return interaction_payload.get("type") == DISCORD_INTERACTION_TYPE_MODAL_SUBMIT


def extract_component_custom_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    data = interaction_payload.get("data")
    if not isinstance(data, dict):
        return None
    return _as_id(data.get("custom_id"))


def operation_key_for_interaction(
    interaction_payload: dict[str, Any],
    *,
    interaction_kind: Optional[str] = None,
) -> Optional[OperationKey]:
    """Key a component or modal interaction by (kind, message, user).

    ``interaction_kind`` defaults to the component custom id. Returns None when
    any of the three parts is missing from the payload.
    """

    kind = _as_id(interaction_kind) or extract_component_custom_id(
        interaction_payload
    )
    message_id = extract_message_id(interaction_payload)
    user_id = extract_user_id(interaction_payload)
    if not kind or not message_id or not user_id:
        return None
    return OperationKey(interaction_kind=kind, subject_id=message_id, actor_id=user_id)
