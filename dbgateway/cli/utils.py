"""Shared CLI utilities for dbgateway."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

import click
from rich.console import Console

from dbgateway.config import get_config
from dbgateway.db import ConnectionManager

# Single console instance reused across CLI modules
console = Console()

T = TypeVar("T")

LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(level: str = "warning", fmt: str = "text") -> None:
    """Install a root handler for the given level name and format (text or json)."""
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logging.basicConfig(level=LEVELS.get(level.lower(), logging.WARNING), handlers=[handler], force=True)


async def _with_manager(
    config_path: Optional[str], verbose: bool, action: Callable[[ConnectionManager], Awaitable[T]]
) -> T:
    config = get_config(config_path, reload=True)
    if not verbose:
        configure_logging(config.logging.level, config.logging.format)
    manager = ConnectionManager()
    for problem in await manager.from_config(config):
        console.print(f"[yellow]{problem}[/yellow]")
    try:
        return await action(manager)
    finally:
        await manager.disconnect_all()


def run_with_manager(ctx: click.Context, action: Callable[[ConnectionManager], Awaitable[T]]) -> T:
    """Load configuration, connect every configured database, run ``action`` and tear down."""
    return asyncio.run(_with_manager(ctx.obj.get("config"), ctx.obj.get("verbose", False), action))


def json_default(value: Any) -> str:
    return str(value)
