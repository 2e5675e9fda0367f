"""
Command-line entry point.

Usage:
    sqlreport models
    sqlreport ask --type sqlite --database shop.db "How many orders per status?"
    sqlreport ask --type postgres --host localhost --port 5432 --database shop \
        --username report --password secret --provider anthropic "Top customers by revenue"
"""

import argparse
import asyncio
import sys
import uuid

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .agent import AgentRunner, ModelRegistry, ProgressEvent, TurnResult
from .config import Settings
from .database import SUPPORTED_DIALECTS
from .errors import ConfigurationError, ErrorKind
from .logging_config import configure_tracing, setup_logger
from .storage import S3Uploader

console = Console()

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sqlreport",
        description="Ask questions about a SQL database in plain language",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("models", help="List the configured language-model backends")

    ask = subparsers.add_parser("ask", help="Run one question against a database")
    ask.add_argument("question", help="Question in natural language")
    ask.add_argument(
        "--type",
        "-t",
        required=True,
        choices=SUPPORTED_DIALECTS,
        help="Database type",
    )
    ask.add_argument("--database", "-d", required=True, help="Database name (file path for sqlite)")
    ask.add_argument("--host", help="Database host")
    ask.add_argument("--port", type=int, help="Database port")
    ask.add_argument("--username", "-u", help="Database user")
    ask.add_argument("--password", "-p", help="Database password")
    ask.add_argument("--provider", help="Backend id (default: first configured)")
    ask.add_argument("--thread", default=None, help="Thread id (default: random)")
    ask.add_argument(
        "--no-export",
        action="store_true",
        help="Do not offer the Excel export tool",
    )
    return parser


def show_models(registry: ModelRegistry) -> None:
    table = Table(title="Available models")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Model", style="dim")
    for backend in registry.list_available():
        table.add_row(backend.id, backend.name, backend.model)
    console.print(table)


def show_event(event: ProgressEvent) -> None:
    style = "red" if event.step == "error" else "green" if event.terminal else "cyan"
    console.print(f"[{style}]{event.percentage:>3}%[/{style}] {event.message}", highlight=False)


def show_result(result: TurnResult) -> None:
    if result.error is not None:
        console.print(
            Panel(
                result.error.message,
                title=f"[bold red]{result.error.kind.value}[/bold red]",
                border_style="red",
            )
        )
        return

    console.print(Panel(result.answer_text or "", title="Answer", border_style="green"))
    if result.tool_invocations:
        table = Table(title="Tool calls", show_lines=False)
        table.add_column("Tool", style="cyan")
        table.add_column("Status")
        table.add_column("ms", justify="right")
        for invocation in result.tool_invocations:
            status = "[green]ok[/green]" if invocation.succeeded else "[red]error[/red]"
            table.add_row(invocation.tool_name, status, str(invocation.duration_ms))
        console.print(table)
    for export in result.exports:
        console.print(f"[bold]Excel report:[/bold] {export.url}")


async def run_ask(args: argparse.Namespace, settings: Settings, registry: ModelRegistry) -> TurnResult:
    uploader = None if args.no_export else S3Uploader.from_settings(settings)
    runner = AgentRunner(registry, settings, uploader=uploader)
    connection = {
        "type": args.type,
        "host": args.host,
        "port": args.port,
        "database": args.database,
        "username": args.username,
        "password": args.password,
    }

    result = None
    async for item in runner.run_turn(
        args.thread or uuid.uuid4().hex,
        connection,
        args.provider,
        args.question,
    ):
        if isinstance(item, TurnResult):
            result = item
        else:
            show_event(item)
    return result


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    setup_logger(settings.log_dir, settings.log_level)
    configure_tracing()

    try:
        registry = ModelRegistry.from_settings(settings)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(EXIT_CONFIG)

    if args.command == "models":
        show_models(registry)
        sys.exit(EXIT_OK)

    try:
        result = asyncio.run(run_ask(args, settings, registry))
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
        sys.exit(EXIT_ERROR)

    show_result(result)
    if result.ok:
        sys.exit(EXIT_OK)
    sys.exit(EXIT_CONFIG if result.error.kind == ErrorKind.CONFIGURATION else EXIT_ERROR)
