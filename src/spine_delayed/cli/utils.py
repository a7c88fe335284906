"""
CLI utility helpers for settings resolution and store construction.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import typer
from rich.console import Console

from spine_delayed.core.errors import ConfigError
from spine_delayed.core.settings import DelayedSettings, load_settings
from spine_delayed.store import RedisStore

console = Console()
err_console = Console(stderr=True)


def resolve_settings(**overrides: Any) -> DelayedSettings:
    """Environment settings with command-line options layered on top."""
    try:
        return load_settings(**{k: v for k, v in overrides.items() if v is not None})
    except ConfigError as exc:
        err_console.print(f"[bold red]Configuration error[/bold red]: {exc.message}")
        raise typer.Exit(code=2) from exc


def get_store(settings: DelayedSettings) -> RedisStore:
    return RedisStore.from_settings(settings)


def parse_args_json(text: str | None) -> dict[str, Any]:
    """Parse the ``--args`` option (a JSON object)."""
    if not text:
        return {}
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"--args is not valid JSON: {exc}") from exc
    if not isinstance(value, dict):
        raise typer.BadParameter("--args must be a JSON object")
    return value


def format_timestamp(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
