"""
Command-line entry point: runs the typer app and turns failures into exit codes.
"""

import logging
import sys

from rich.console import Console

from debrid_dl.cli.app import app
from debrid_dl.cli.formatters import format_error_with_suggestions
from debrid_dl.exceptions import DebridError

log = logging.getLogger("debrid_dl")


def main() -> None:
    # typer/click exit on their own (usage errors, --version, Exit, Abort)
    console = Console(stderr=True)
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped.[/yellow]")
        sys.exit(130)
    except DebridError as e:
        console.print(format_error_with_suggestions(e))
        sys.exit(1)
    except Exception as e:
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
