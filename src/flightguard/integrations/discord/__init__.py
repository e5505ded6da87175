"""Discord interaction de-duplication."""

from .component_guard import (
    ComponentGuardResult,
    ComponentOperationGuard,
    build_deferred_update_payload,
)
from .errors import (
    DiscordAPIError,
    DiscordError,
    DiscordPermanentError,
    DiscordTransientError,
)
from .interactions import (
    extract_component_custom_id,
    extract_message_id,
    extract_user_id,
    operation_key_for_interaction,
)

__all__ = [
    "ComponentGuardResult",
    "ComponentOperationGuard",
    "DiscordAPIError",
    "DiscordError",
    "DiscordPermanentError",
    "DiscordTransientError",
    "build_deferred_update_payload",
    "extract_component_custom_id",
    "extract_message_id",
    "extract_user_id",
    "operation_key_for_interaction",
]
