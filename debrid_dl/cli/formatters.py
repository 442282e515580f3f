"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from debrid_dl.models.config import ServerConfig
from debrid_dl.utils.formatting import redact

SECRET_KEYS = {"api_token"}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `debrid-dl init <API_TOKEN>` to create a configuration file.",
            "• Run `debrid-dl validate` to see which setting is rejected.",
        ],
        "DirectoryNotWritableError": [
            "• Check that the directory exists and is writable by the server user.",
        ],
        "OSError": [
            "• The port may already be in use. Try `debrid-dl serve --port <N>`.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -v for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_file: Path, config_data: dict[str, Any]) -> None:
    """Prints the raw configuration values, with secrets masked."""
    console = Console()
    table = Table(title=f"Configuration ({config_file})", box=box.ROUNDED)
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    for key in sorted(config_data):
        value = str(config_data[key])
        if key in SECRET_KEYS:
            value = redact(value)
        table.add_row(key, value or "[dim]<empty>[/dim]")
    console.print(table)


def print_validation_table(config: ServerConfig) -> None:
    """Prints a summary of the validated configuration."""
    console = Console()
    table = Table(title="Configuration is valid", box=box.SIMPLE_HEAVY)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Listen address", f"{config.host}:{config.port}")
    table.add_row("API base URL", config.api_base_url)
    table.add_row("API token", redact(config.api_token))
    table.add_row("Request timeout", f"{config.request_timeout:g}s")
    table.add_row("Ping interval", f"{config.ping_interval:g}s")
    table.add_row("Error history", str(config.max_errors))
    table.add_row("Post-process", config.post_process_command or "[dim]disabled[/dim]")
    table.add_row("Default save dir", config.default_save_dir or "[dim]none[/dim]")
    console.print(table)
