from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, cast

import yaml

from .cron import DEFAULT_CRON_PATTERN, DEFAULT_RUN_ORDER, CronJob
from .exceptions import ConfigError, InvalidCronPatternError
from .logging_utils import LOG_LEVEL_ENV, resolve_log_level

CONFIG_FILENAME = "flightguard.yml"
OVERRIDE_FILENAME = "flightguard.override.yml"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_ACK_MAX_ATTEMPTS = 3
DEFAULT_ACK_BASE_WAIT_SECONDS = 0.5

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscordGuardConfig:
    ack_max_attempts: int = DEFAULT_ACK_MAX_ATTEMPTS
    ack_base_wait_seconds: float = DEFAULT_ACK_BASE_WAIT_SECONDS


@dataclass(frozen=True)
class CronJobConfig:
    name: str
    pattern: str = DEFAULT_CRON_PATTERN
    enabled: bool = True
    triggered: bool = False
    run_order: float = DEFAULT_RUN_ORDER

    def build(self) -> CronJob:
        """Build a ``CronJob``; the caller still has to ``set_function``."""

        return (
            CronJob(self.name)
            .set_pattern(self.pattern)
            .set_enabled(self.enabled)
            .set_triggered(self.triggered)
            .set_run_order(self.run_order)
        )


@dataclass(frozen=True)
class FlightguardConfig:
    root: Path
    log_level: str = DEFAULT_LOG_LEVEL
    discord: DiscordGuardConfig = field(default_factory=DiscordGuardConfig)
    cron_jobs: tuple[CronJobConfig, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "log_level": self.log_level,
            "discord": {
                "ack_max_attempts": self.discord.ack_max_attempts,
                "ack_base_wait_seconds": self.discord.ack_base_wait_seconds,
            },
            "cron_jobs": [
                {
                    "name": job.name,
                    "pattern": job.pattern,
                    "enabled": job.enabled,
                    "triggered": job.triggered,
                    "run_order": job.run_order,
                }
                for job in self.cron_jobs
            ],
        }


def _merge_defaults(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = cast(Dict[str, Any], json.loads(json.dumps(base)))
    for key, value in overrides.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = _merge_defaults(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml_dict(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def _parse_positive_int(value: Any, *, default: int, key: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer") from exc
    if parsed <= 0:
        raise ConfigError(f"{key} must be > 0")
    return parsed


def _parse_non_negative_float(value: Any, *, default: float, key: str) -> float:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be a number")
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be a number") from exc
    if parsed < 0:
        raise ConfigError(f"{key} must be >= 0")
    return parsed


def _parse_bool(value: Any, *, default: bool, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise ConfigError(f"{key} must be a boolean")


def _parse_log_level(value: Any) -> str:
    raw = DEFAULT_LOG_LEVEL if value is None else str(value).strip().upper()
    try:
        resolve_log_level(raw)
    except ValueError as exc:
        raise ConfigError(f"log_level: {exc}") from exc
    return raw


def _parse_cron_jobs(value: Any) -> tuple[CronJobConfig, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigError("cron_jobs must be a list")
    jobs: list[CronJobConfig] = []
    seen: set[str] = set()
    for index, item in enumerate(value):
        prefix = f"cron_jobs[{index}]"
        if not isinstance(item, dict):
            raise ConfigError(f"{prefix} must be a mapping")
        name = str(item.get("name") or "").strip()
        if not name:
            raise ConfigError(f"{prefix}.name must be non-empty")
        if name in seen:
            raise ConfigError(f"{prefix}.name duplicates {name!r}")
        seen.add(name)
        run_order = item.get("run_order", DEFAULT_RUN_ORDER)
        if isinstance(run_order, bool) or not isinstance(run_order, (int, float)):
            raise ConfigError(f"{prefix}.run_order must be a number")
        job = CronJobConfig(
            name=name,
            pattern=str(item.get("pattern", DEFAULT_CRON_PATTERN)),
            enabled=_parse_bool(
                item.get("enabled"), default=True, key=f"{prefix}.enabled"
            ),
            triggered=_parse_bool(
                item.get("triggered"), default=False, key=f"{prefix}.triggered"
            ),
            run_order=run_order,
        )
        try:
            job.build()
        except (InvalidCronPatternError, TypeError) as exc:
            raise ConfigError(f"{prefix}: {exc}") from exc
        jobs.append(job)
    return tuple(jobs)


def config_from_raw(root: Path, raw: Dict[str, Any]) -> FlightguardConfig:
    discord_raw = raw.get("discord")
    if discord_raw is not None and not isinstance(discord_raw, dict):
        raise ConfigError("discord must be a mapping")
    discord_cfg = discord_raw or {}
    discord = DiscordGuardConfig(
        ack_max_attempts=_parse_positive_int(
            discord_cfg.get("ack_max_attempts"),
            default=DEFAULT_ACK_MAX_ATTEMPTS,
            key="discord.ack_max_attempts",
        ),
        ack_base_wait_seconds=_parse_non_negative_float(
            discord_cfg.get("ack_base_wait_seconds"),
            default=DEFAULT_ACK_BASE_WAIT_SECONDS,
            key="discord.ack_base_wait_seconds",
        ),
    )
    return FlightguardConfig(
        root=root,
        log_level=_parse_log_level(raw.get("log_level")),
        discord=discord,
        cron_jobs=_parse_cron_jobs(raw.get("cron_jobs")),
    )


def load_config(root: Optional[Path] = None) -> FlightguardConfig:
    """Load ``flightguard.yml`` plus the optional override file from ``root``."""

    root = (root or Path.cwd()).resolve()
    merged = _load_yaml_dict(root / CONFIG_FILENAME)
    override_path = root / OVERRIDE_FILENAME
    try:
        override = _load_yaml_dict(override_path)
    except ConfigError as exc:
        raise ConfigError(
            f"Invalid override config {override_path}; fix or delete it: {exc}"
        ) from exc
    if override:
        merged = _merge_defaults(merged, override)
    env_level = os.environ.get(LOG_LEVEL_ENV)
    if env_level:
        logger.debug("Log level overridden by %s", LOG_LEVEL_ENV)
        merged["log_level"] = env_level
    return config_from_raw(root, merged)
