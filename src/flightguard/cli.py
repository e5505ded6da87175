import json
import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer
import yaml

from . import __version__
from .core.config import load_config
from .core.cron import validate_cron_pattern
from .core.exceptions import ConfigError, InvalidCronPatternError
from .core.logging_utils import setup_logging

logger = logging.getLogger("flightguard.cli")

app = typer.Typer(add_completion=False)


def raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(f"flightguard {__version__}")
    raise typer.Exit(code=0)


@app.callback()
def _root(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Single-flight guards for chat-bot interaction handlers."""


@app.command("config")
def config_cmd(
    root: Optional[Path] = typer.Option(
        None, "--root", help="Directory holding flightguard.yml"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Print the effective configuration."""

    try:
        config = load_config(root)
    except ConfigError as exc:
        raise_exit(str(exc), cause=exc)
    setup_logging(config.log_level)
    logger.debug("Loaded config from %s", config.root)
    data = config.to_dict()
    if json_output:
        typer.echo(json.dumps(data, indent=2))
        return
    typer.echo(yaml.safe_dump(data, sort_keys=False).rstrip())


@app.command("cron-check")
def cron_check_cmd(
    pattern: str = typer.Argument(..., help="Five-field cron pattern"),
) -> None:
    """Validate a cron pattern."""

    try:
        normalized = validate_cron_pattern(pattern)
    except InvalidCronPatternError as exc:
        raise_exit(f"Invalid cron pattern: {exc}", cause=exc)
    typer.echo(f"ok: {normalized}")


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
