"""Invoke gateway tools from the command line."""

from __future__ import annotations

import json
from typing import Optional

import click
from rich.table import Table

from dbgateway.cli.utils import console, run_with_manager
from dbgateway.db import ConnectionManager
from dbgateway.exceptions import GatewayError
from dbgateway.gateway import TOOLS, ToolDispatcher


@click.command(name="tool")
@click.argument("name", required=False)
@click.option("--args", "args_json", default="{}", help="Tool arguments as a JSON object")
@click.option("--list", "list_tools", is_flag=True, help="List available tools")
@click.pass_context
def tool_command(ctx: click.Context, name: Optional[str], args_json: str, list_tools: bool) -> None:
    """🔧 Call a gateway tool against the configured connections."""
    if list_tools or not name:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Tool", style="cyan")
        table.add_column("Description")
        for spec in TOOLS:
            table.add_row(spec.name, spec.description)
        console.print(table)
        return

    try:
        arguments = json.loads(args_json)
    except ValueError as exc:
        console.print(f"[red]Error: --args must be valid JSON: {exc}[/red]")
        raise SystemExit(1) from exc
    if not isinstance(arguments, dict):
        console.print("[red]Error: --args must be a JSON object[/red]")
        raise SystemExit(1)

    async def action(manager: ConnectionManager):
        return await ToolDispatcher(manager).call_tool(name, arguments)

    try:
        result = run_with_manager(ctx, action)
    except GatewayError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise SystemExit(1) from exc

    click.echo(result.text)
    if result.is_error:
        raise SystemExit(1)
