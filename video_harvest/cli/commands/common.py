"""Shared helpers for video-harvest CLI commands."""

import json
import sys
from datetime import date, datetime
from typing import NoReturn

import click
from rich.console import Console

from video_harvest.config import AppSettings
from video_harvest.dependencies import get_settings
from video_harvest.logging_config import configure_application_logging

# Status output goes to stderr; stdout carries JSON lines only.
console = Console(stderr=True)

DATE_TYPE = click.DateTime(formats=["%Y-%m-%d"])


def bootstrap() -> AppSettings:
    """Load settings and route logs to stderr."""
    try:
        settings = get_settings()
    except ValueError as exc:
        fail(str(exc))
    configure_application_logging(settings, console_stream=sys.stderr)
    return settings


def fail(message: str) -> NoReturn:
    console.print(f"[red]Error:[/red] {message}")
    raise SystemExit(1)


def as_date(value: datetime | None) -> date | None:
    return value.date() if value is not None else None


def echo_json_line(payload: object) -> None:
    click.echo(json.dumps(payload, ensure_ascii=False))


def require_one(**options: object) -> str:
    """Return the name of the single option that was given."""
    given = [name for name, value in options.items() if value is not None]
    if len(given) != 1:
        flags = " or ".join(f"--{name.replace('_', '-')}" for name in options)
        fail(f"Provide exactly one of {flags}.")
    return given[0]
