"""Main CLI entry point for dbgateway."""

from __future__ import annotations

import click
from rich.panel import Panel
from rich.text import Text

from dbgateway import __version__
from dbgateway.cli.commands import register_commands
from dbgateway.cli.commands.configuration import config_group
from dbgateway.cli.commands.database import db_group
from dbgateway.cli.commands.tool import tool_command
from dbgateway.cli.utils import configure_logging, console
from dbgateway.config import EnvironmentSettings


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.option("--config", type=click.Path(exists=True), help="Path to configuration file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(
    ctx: click.Context,
    version: bool,
    config: str,
    verbose: bool,
) -> None:
    """dbgateway - One tool surface over many database backends."""
    ctx.ensure_object(dict)
    ctx.obj.update(
        {
            "config": config,
            "verbose": verbose,
        }
    )

    settings = EnvironmentSettings()
    configure_logging("debug" if verbose or settings.debug else settings.log_level)

    if version:
        console.print(f"dbgateway v{__version__}")
        return

    if ctx.invoked_subcommand is None:
        show_dashboard()


COMMAND_REGISTRY = [
    db_group,
    tool_command,
    config_group,
]

register_commands(cli, COMMAND_REGISTRY)


def show_dashboard() -> None:
    """Display the command overview."""
    title = Text("dbgateway", style="bold blue")
    subtitle = Text("One tool surface over many database backends", style="italic")

    dashboard_content = Text()
    dashboard_content.append("🗄️  db      Inspect and query connections\n", style="bold")
    dashboard_content.append("🔧 tool    Call a gateway tool\n", style="bold")
    dashboard_content.append("⚙️  config  Validate or create configuration\n", style="bold")
    dashboard_content.append("\nRun 'dbgateway --help' for available commands", style="dim")

    panel = Panel(
        dashboard_content,
        title=title,
        subtitle=subtitle,
        border_style="blue",
        padding=(1, 2),
    )

    console.print(panel)


if __name__ == "__main__":
    cli()
