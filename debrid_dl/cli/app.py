"""
Defines the command-line interface for the application using Typer.
"""

import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from debrid_dl import __version__
from debrid_dl.exceptions import DebridError
from debrid_dl.models.config import DEFAULT_API_BASE_URL
from debrid_dl.storage.config_manager import ConfigManager

from .formatters import print_config, print_validation_table

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%x %X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("debrid_dl")

app = typer.Typer(
    name="debrid-dl",
    help=(
        "A self-hosted download manager for debrid services. Use 'debrid-dl"
        " <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "debrid-dl"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """debrid-dl server"""
    if version:
        console.print(f"[bold]debrid-dl[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    if verbose >= 1:
        logging.getLogger("debrid_dl").setLevel("DEBUG")

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]debrid-dl init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(CONFIG_FILE)
        config_manager.load_config()
        print_config(CONFIG_FILE, config_manager._get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    api_token: str = typer.Argument(..., help="Private API token of the debrid account."),
    api_base_url: str = typer.Option(
        DEFAULT_API_BASE_URL, "--api-base-url", help="Root URL of the debrid REST API."
    ),
    save_dir: str = typer.Option(
        "", "--save-dir", help="Directory used when a submission names none."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration without asking."
    ),
):
    """Initialize the configuration file with debrid credentials."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    ConfigManager(CONFIG_FILE).save_new_config(
        {
            "api_token": api_token,
            "api_base_url": api_base_url,
            "default_save_dir": save_dir,
        }
    )
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready! Start the server with: [cyan]debrid-dl serve[/cyan]")


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Address to listen on."),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to listen on."),
    access_log: bool = typer.Option(
        False, "--access-log", help="Log every HTTP request."
    ),
):
    """Run the download server."""
    from debrid_dl.web.server import run_server

    cli_options = {
        key: value
        for key, value in {"host": host, "port": port}.items()
        if value is not None
    }
    try:
        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
    except DebridError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e

    run_server(config, access_log=access_log)


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        print_validation_table(config)
    except DebridError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
