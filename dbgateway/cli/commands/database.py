"""Database CLI commands."""

from __future__ import annotations

import json
from typing import Any, List, Optional, Tuple

import click
from rich.table import Table

from dbgateway.cli.utils import console, json_default, run_with_manager
from dbgateway.db import ConnectionManager, QueryResult
from dbgateway.exceptions import ConfigurationError, GatewayError


def _parse_param(value: str) -> Any:
    """Read a ``--param`` value as JSON, falling back to the raw string."""
    try:
        return json.loads(value)
    except ValueError:
        return value


def _fail(exc: Exception) -> None:
    if isinstance(exc, ConfigurationError):
        console.print(f"[red]Configuration Error: {exc}[/red]")
    else:
        console.print(f"[red]Error: {exc}[/red]")
    raise SystemExit(1) from exc


@click.group(name="db")
@click.pass_context
def db_group(ctx: click.Context) -> None:
    """🗄️  Database connection management."""
    pass


@db_group.command(name="status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """Show configured connections and which one is current."""

    async def action(manager: ConnectionManager):
        return manager.list_connections(), manager.get_current_connection_name()

    try:
        connections, current = run_with_manager(ctx, action)
    except GatewayError as exc:
        _fail(exc)

    console.print("[bold blue]Database Connection Status[/bold blue]\n")
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Connection", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Status", style="yellow")
    table.add_column("Current", style="blue")
    for entry in connections:
        status_icon = "🟢 Connected" if entry['connected'] else "⚪ Disconnected"
        table.add_row(entry['name'], entry['type'], status_icon, "✓" if entry['name'] == current else "")
    console.print(table)
    console.print(f"\nTotal: {len(connections)} connection(s)")


@db_group.command(name="test")
@click.option("--database", "-d", help="Specific connection to test (default: all)")
@click.pass_context
def test_connection_command(ctx: click.Context, database: Optional[str]) -> None:
    """Round-trip each connection."""

    async def action(manager: ConnectionManager):
        if database:
            adapter = manager.require_connection(database)
            return {database: await adapter.validate_connection()}
        return await manager.validate_all_connections()

    try:
        results = run_with_manager(ctx, action)
    except GatewayError as exc:
        _fail(exc)

    console.print("[bold blue]Testing Database Connections[/bold blue]\n")
    for name, healthy in results.items():
        if healthy:
            console.print(f"[green]✅ {name}: connection OK[/green]")
        else:
            console.print(f"[red]❌ {name}: connection failed[/red]")
    if not all(results.values()):
        raise SystemExit(1)


@db_group.command(name="tables")
@click.option("--database", "-d", help="Connection to list tables from (default: current)")
@click.pass_context
def tables_command(ctx: click.Context, database: Optional[str]) -> None:
    """List tables, collections or key groups."""

    async def action(manager: ConnectionManager):
        return await manager.require_connection(database).get_tables()

    try:
        tables = run_with_manager(ctx, action)
    except GatewayError as exc:
        _fail(exc)

    if not tables:
        console.print("[yellow]No tables found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", width=4)
    table.add_column("Name", style="cyan")
    table.add_column("Schema", style="green")
    table.add_column("Type", style="yellow")
    table.add_column("Columns", justify="right")
    for i, info in enumerate(tables, start=1):
        table.add_row(str(i), info.name, info.schema or "", info.type, str(len(info.columns)))
    console.print(table)
    console.print(f"\n[dim]Total: {len(tables)} table(s)[/dim]")


@db_group.command(name="describe")
@click.argument("table_name")
@click.option("--database", "-d", help="Connection to use (default: current)")
@click.option("--schema", "-s", help="Schema name (database-specific)")
@click.pass_context
def describe_command(ctx: click.Context, table_name: str, database: Optional[str], schema: Optional[str]) -> None:
    """Show columns and indexes of one table."""

    async def action(manager: ConnectionManager):
        return await manager.require_connection(database).get_table_info(table_name, schema)

    try:
        info = run_with_manager(ctx, action)
    except GatewayError as exc:
        _fail(exc)

    if info is None:
        console.print(f"[red]Table {table_name} not found[/red]")
        raise SystemExit(1)

    console.print(f"[bold blue]{info.type.replace('_', ' ').title()}: {info.name}[/bold blue]\n")
    columns = Table(show_header=True, header_style="bold magenta")
    columns.add_column("Column", style="cyan")
    columns.add_column("Type", style="green")
    columns.add_column("Nullable")
    columns.add_column("Key", style="yellow")
    columns.add_column("Default", style="dim")
    for column in info.columns:
        key = "PK" if column.is_primary_key else ("FK" if column.is_foreign_key else "")
        default = "" if column.default_value is None else str(column.default_value)
        columns.add_row(column.name, column.data_type, "YES" if column.nullable else "NO", key, default)
    console.print(columns)

    if info.indexes:
        console.print("\n[bold]Indexes[/bold]")
        for index in info.indexes:
            unique = " unique" if index.unique else ""
            console.print(f"  {index.name} ({', '.join(index.columns)}) [dim]{index.type}{unique}[/dim]")


@db_group.command(name="stats")
@click.option("--database", "-d", help="Connection to use (default: current)")
@click.pass_context
def stats_command(ctx: click.Context, database: Optional[str]) -> None:
    """Show table, view and index counts and database size."""

    async def action(manager: ConnectionManager):
        return await manager.require_connection(database).get_database_stats()

    try:
        stats = run_with_manager(ctx, action)
    except GatewayError as exc:
        _fail(exc)

    table = Table(show_header=False, box=None)
    table.add_column("Property", style="cyan", width=18)
    table.add_column("Value", style="green")
    table.add_row("Tables:", str(stats.total_tables))
    table.add_row("Views:", str(stats.total_views))
    table.add_row("Indexes:", str(stats.total_indexes))
    table.add_row("Size:", stats.database_size)
    table.add_row("Connections:", str(stats.connection_count))
    console.print(table)


def _render_csv(result: QueryResult) -> str:
    return result.to_dataframe().to_csv(index=False)


@db_group.command(name="query")
@click.argument("query")
@click.option("--database", "-d", help="Connection to use (default: current)")
@click.option("--param", "-p", "params", multiple=True, help="Positional parameter (JSON or plain text), repeatable")
@click.option("--output", "-o", type=click.Choice(["table", "json", "csv"]), default="table", help="Output format")
@click.pass_context
def query_command(
    ctx: click.Context,
    query: str,
    database: Optional[str],
    params: Tuple[str, ...],
    output: str,
) -> None:
    """Run one query through the safe-execution path."""
    parameters: Optional[List[Any]] = [_parse_param(value) for value in params] or None

    async def action(manager: ConnectionManager):
        return await manager.require_connection(database).safe_execute_query(query, parameters)

    try:
        result = run_with_manager(ctx, action)
    except GatewayError as exc:
        _fail(exc)

    if output == "json":
        click.echo(json.dumps(result.to_dict(), indent=2, default=json_default))
        return
    if output == "csv":
        click.echo(_render_csv(result), nl=False)
        return

    if result.is_empty:
        console.print(f"[green]Query OK, {result.row_count} row(s) affected[/green]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    for column in result.columns:
        table.add_column(column)
    for row in result.rows:
        table.add_row(*("" if row.get(column) is None else str(row.get(column)) for column in result.columns))
    console.print(table)
    console.print(f"\n[dim]{result.row_count} row(s)[/dim]")
