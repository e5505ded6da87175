"""Structured log event helpers."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional, Union

LOG_LEVEL_ENV = "FLIGHTGUARD_LOG_LEVEL"
DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _json_safe(item) for key, item in value.items()}
    return str(value)


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    exc: Optional[BaseException] = None,
    **fields: Any,
) -> None:
    """Emit a single structured log line.

    The message is a JSON object whose ``event`` key is the dotted event name
    followed by the caller's fields. ``None`` fields are dropped.
    """

    if not logger.isEnabledFor(level):
        return
    payload: dict[str, Any] = {"event": event}
    for key, value in fields.items():
        if value is None:
            continue
        payload[key] = _json_safe(value)
    if exc is not None:
        payload["error"] = str(exc)
        payload["error_type"] = type(exc).__name__
    logger.log(level, json.dumps(payload, sort_keys=False))


def resolve_log_level(value: Union[str, int, None], *, default: int = logging.INFO) -> int:
    if value is None:
        return default
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    name = str(value).strip().upper()
    if not name:
        return default
    level = logging.getLevelName(name)
    if isinstance(level, int):
        return level
    raise ValueError(f"Unknown log level: {value!r}")


def setup_logging(level: Union[str, int, None] = None) -> int:
    """Configure the root logger once; ``FLIGHTGUARD_LOG_LEVEL`` wins over ``level``."""

    env_level = os.environ.get(LOG_LEVEL_ENV)
    resolved = resolve_log_level(env_level if env_level else level)
    logging.basicConfig(level=resolved, format=DEFAULT_LOG_FORMAT)
    logging.getLogger("flightguard").setLevel(resolved)
    return resolved
