"""cli entrypoint for model canvas."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .core.document import load_document
from .core.validation import validate_for_export
from .logging_config import setup_logging


def render_issues(console: Console, title: str, issues) -> None:
    """print issues as a table: message, field path, id, suggestion."""
    table = Table(title=title, title_justify="left", show_lines=False)
    table.add_column("#", style="dim", justify="right")
    table.add_column("message", style="red")
    table.add_column("field")
    table.add_column("id", style="cyan")
    table.add_column("suggestion", style="green")
    for n, issue in enumerate(issues, start=1):
        table.add_row(
            str(n),
            Text(issue.message),
            Text(issue.field_path or ""),
            Text(issue.id or ""),
            Text(issue.suggestion or ""),
        )
    console.print(table)


def check(path: str, export: bool = False, console: Optional[Console] = None) -> int:
    """validate a document file; returns the process exit code."""
    console = console or Console()
    file_path = Path(path).expanduser()
    if not file_path.exists():
        console.print(f"[red]file not found:[/red] {path}")
        return 2

    result = load_document(file_path.read_bytes())
    if not result.ok:
        title = "invalid JSON" if result.stage == "parse" else "schema issues"
        render_issues(console, f"{file_path.name}: {title}", result.issues)
        return 1

    if export:
        export_result = validate_for_export(result.model)
        if not export_result.ok:
            render_issues(console, f"{file_path.name}: not exportable", export_result.issues)
            return 1

    console.print(
        f"[green]ok[/green] {file_path.name}: "
        f"{len(result.model.objects)} object(s), {len(result.model.relationships)} relationship(s)"
    )
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="model canvas - visual editor core for numerical models"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    check_parser = sub.add_parser("check", help="validate a model json document")
    check_parser.add_argument("document", help="path to the json document")
    check_parser.add_argument(
        "--export",
        "-e",
        action="store_true",
        help="also apply export rules (every object must be named)",
    )

    sub.add_parser("serve", help="run the api server (see `serve --help`)", add_help=False)

    args, rest = parser.parse_known_args()

    if args.command == "serve":
        from .api.server import main as serve

        sys.argv = [f"{parser.prog} serve", *rest]
        serve()
        return

    if rest:
        parser.error(f"unrecognized arguments: {' '.join(rest)}")
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)
    sys.exit(check(args.document, export=args.export))


if __name__ == "__main__":
    main()
