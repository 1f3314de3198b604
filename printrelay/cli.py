"""Command-line entry point for the print relay."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from rich.console import Console
from rich.table import Table

from .blob_store import GcsBlobStore
from .config_manager import ConfigManager, RelaySettings
from .errors import ConfigurationError
from .events import FanOutEventSink, JobCompleted, LogBusEventSink
from .logbus import BUS, LogBus, installLogBusHandler
from .printers import PrinterDescriptor, parsePrinterEntry
from .printflow import DispatchPipeline, JobRecord, RelayController
from .staging import StagingArea
from .transport import RawSocketTransport

log = logging.getLogger(__name__)

_LEVEL_STYLES = {
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
}


class ConsoleEventSink:
    """Prints status lines and job events to a rich console."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def status(self, text: str, level: str = "info") -> None:
        style = _LEVEL_STYLES.get(level, "white")
        self.console.print(f"[dim]{time.strftime('%H:%M:%S')}[/dim] [{style}]{text}[/{style}]", highlight=False)

    def new_job(self, key: str) -> None:
        self.console.print(f"[bold]New print job:[/bold] {key}", highlight=False)

    def job_ready(self, key: str, local_path: Path) -> None:
        self.console.print(f"[green]Ready to print:[/green] {key} -> {local_path}", highlight=False)

    def job_completed(self, event: JobCompleted) -> None:
        if event.succeeded:
            self.console.print(f"[bold green]Printed[/bold green] {event.key or event.local_path} on {event.printer_name}")
        else:
            self.console.print(f"[bold red]Print failed[/bold red] {event.key or event.local_path}: {event.detail}")

    def refresh(self) -> None:
        """Console output is append-only, so there is nothing to re-render."""


def configureLogging(level: str, bus: Optional[LogBus] = None) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    installLogBusHandler(bus)


def parseArguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="printrelay",
        description="Relay print-ready documents from a storage bucket to network printers.",
    )
    parser.add_argument("--config", help="Path to the JSON config file (default: ~/.printrelay/config.json).")
    parser.add_argument("--logLevel", default=None, help="Override the configured log level.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    listenParser = subparsers.add_parser("listen", help="Poll the bucket continuously and stage new jobs.")
    listenParser.add_argument(
        "--printer",
        default=None,
        help="Print every staged job on this printer automatically.",
    )
    listenParser.add_argument(
        "--maxCycles",
        type=int,
        default=0,
        help="Stop after this many poll cycles (0 for indefinite).",
    )

    subparsers.add_parser("poll", help="Run a single poll cycle and exit.")

    printParser = subparsers.add_parser("print", help="Send a staged file to a printer.")
    printParser.add_argument("file", help="Path of the staged document.")
    printParser.add_argument("--printer", required=True, help="Configured printer name.")
    printParser.add_argument("--key", default=None, help="Bucket key to delete after printing.")

    subparsers.add_parser("printers", help="List configured printers.")

    configureParser = subparsers.add_parser("configure", help="Update and save the config file.")
    configureParser.add_argument("--bucket", default=None, help="Bucket to poll.")
    configureParser.add_argument("--project", default=None, help="GCP project for the storage client.")
    configureParser.add_argument("--prefix", default=None, help="Only poll objects below this prefix.")
    configureParser.add_argument("--pollInterval", type=float, default=None, help="Seconds between poll cycles.")
    configureParser.add_argument("--stagingDir", default=None, help="Directory for downloaded documents.")
    configureParser.add_argument(
        "--printer",
        dest="printers",
        action="append",
        default=[],
        metavar="NAME=HOST[:PORT]",
        help="Add or replace a printer (repeatable).",
    )
    configureParser.add_argument(
        "--removePrinter",
        action="append",
        default=[],
        metavar="NAME",
        help="Remove a printer by name (repeatable).",
    )

    return parser.parse_args(argv)


def loadSettings(configPath: Optional[str]) -> RelaySettings:
    manager = ConfigManager(Path(configPath).expanduser() if configPath else None)
    return manager.load_settings()


def buildPipeline(settings: RelaySettings, sink) -> DispatchPipeline:
    store = GcsBlobStore(
        settings.bucket,
        project=settings.project,
        prefix=settings.prefix,
        timeout=settings.store_timeout,
    )
    return DispatchPipeline(
        store=store,
        staging=StagingArea(settings.staging_dir),
        transport=RawSocketTransport(settings.printer_timeout),
        registry=settings.printer_registry(),
        sink=sink,
        suffix=settings.job_suffix,
    )


def showPrinters(settings: RelaySettings, console: Console) -> int:
    registry = settings.printer_registry()
    if not len(registry):
        console.print("[yellow]No printers configured.[/yellow]")
        return 1
    table = Table(title="Configured printers")
    table.add_column("Name")
    table.add_column("Host")
    table.add_column("Port", justify="right")
    for printer in registry:
        table.add_row(printer.name, printer.host, str(printer.port))
    console.print(table)
    return 0


_JOB_COLUMNS = ("key", "state", "local_path", "printer", "error", "updated_at")


def showJobs(records: Iterable[JobRecord], console: Console, title: str) -> None:
    rows = [record.to_display_dict() for record in records]
    if not rows:
        return
    table = Table(title=title)
    for column in _JOB_COLUMNS:
        table.add_column(column.replace("_", " ").title())
    for row in rows:
        table.add_row(*(row[column] for column in _JOB_COLUMNS))
    console.print(table)


def parsePrinterOption(value: str) -> PrinterDescriptor:
    """Parse ``NAME=HOST[:PORT]`` from the command line."""
    name, separator, address = value.partition("=")
    if not separator:
        raise ConfigurationError(f"printer option {value!r} must look like NAME=HOST[:PORT]")
    host, _, port = address.partition(":")
    return parsePrinterEntry({"name": name, "host": host, "port": port})


def configure(arguments: argparse.Namespace, console: Console) -> int:
    manager = ConfigManager(Path(arguments.config).expanduser() if arguments.config else None)

    for option, key in (
        ("bucket", "bucket"),
        ("project", "project"),
        ("prefix", "prefix"),
        ("pollInterval", "poll_interval"),
        ("stagingDir", "staging_dir"),
    ):
        value = getattr(arguments, option)
        if value is not None:
            manager.set(key, value)

    printers: List[Dict[str, Any]] = [
        dict(entry) for entry in manager.get("printers", []) if entry.get("name") not in arguments.removePrinter
    ]
    for descriptor in (parsePrinterOption(value) for value in arguments.printers):
        printers = [entry for entry in printers if entry.get("name") != descriptor.name]
        printers.append({"name": descriptor.name, "host": descriptor.host, "port": descriptor.port})
    manager.set("printers", printers)

    settings = manager.load_settings(environ={})
    settings.printer_registry()
    if not manager.save():
        console.print(f"[bold red]Could not write {manager.config_path}[/bold red]")
        return 1
    console.print(f"Configuration saved to {manager.config_path}")
    showPrinters(settings, console)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    arguments = parseArguments(argv)
    console = Console()

    try:
        if arguments.command == "configure":
            configureLogging(arguments.logLevel or "INFO")
            return configure(arguments, console)

        settings = loadSettings(arguments.config)
        bus = LogBus(folder=settings.log_folder) if settings.log_folder else BUS
        configureLogging(arguments.logLevel or settings.log_level, bus)

        if arguments.command == "printers":
            return showPrinters(settings, console)

        settings.validate()
    except ConfigurationError as error:
        console.print(f"[bold red]{error}[/bold red]")
        return 2

    sink = FanOutEventSink(ConsoleEventSink(console), LogBusEventSink(bus))
    pipeline = buildPipeline(settings, sink)

    if arguments.command == "poll":
        summary = asyncio.run(pipeline.poll_cycle())
        showJobs(pipeline.state.jobs.values(), console, "Staged jobs")
        return 1 if summary.error else 0

    if arguments.command == "print":
        outcome = asyncio.run(pipeline.print_job(arguments.file, arguments.printer, arguments.key))
        return 0 if outcome.succeeded else 1

    if arguments.printer and arguments.printer not in pipeline.registry:
        console.print(f'[bold red]Printer "{arguments.printer}" not found.[/bold red]')
        return 2

    async def _listen() -> None:
        controller = RelayController(
            pipeline,
            poll_interval=settings.poll_interval,
            auto_print_printer=arguments.printer,
        )
        await controller.run(max_cycles=max(0, arguments.maxCycles))

    try:
        asyncio.run(_listen())
    except KeyboardInterrupt:
        console.print("Stopping relay.")
    showJobs(pipeline.state.jobs.values(), console, "Jobs still outstanding")
    return 0


if __name__ == "__main__":
    sys.exit(main())
