"""
Main CLI application using Typer.
"""

import asyncio
from pathlib import Path
from typing import Annotated, Any, Dict, Optional

import typer
from rich.console import Console
from rich.table import Table

from ..adapters.booking_store import create_store
from ..config import Settings, load_settings
from ..domain.exceptions import ConfigurationError, SchedulingError
from ..logging_setup import configure_logging
from ..services.scheduling import SchedulingService

app = typer.Typer(
    name="appointment-scheduler",
    help="Find free appointment slots and book them across timezones",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
StoreOption = Annotated[Optional[Path], typer.Option("--store", help="JSON booking store file (overrides STORE_PATH)")]
TimezoneOption = Annotated[Optional[str], typer.Option("--timezone", "-t", help="Requester timezone (IANA name)")]


def _load_settings(config_file: Optional[Path], store: Optional[Path] = None) -> Settings:
    """Load settings or exit with a readable error."""
    overrides: Dict[str, Any] = {}
    if store is not None:
        overrides["store_path"] = store

    try:
        settings = load_settings(config_file, **overrides)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(1)

    configure_logging(settings.log_level)
    return settings


def _build_service(settings: Settings) -> SchedulingService:
    return SchedulingService.from_settings(settings, create_store(settings.store_path))


@app.command()
def serve(
    config_file: ConfigOption = None,
    store: StoreOption = None,
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address (overrides HOST)")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port (overrides PORT)")] = None,
):
    """
    Run the HTTP API server.
    """
    import uvicorn

    from ..api.app import create_app

    settings = _load_settings(config_file, store)

    try:
        application = create_app(settings)
    except SchedulingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    uvicorn.run(
        application,
        host=host or settings.host,
        port=port or settings.port,
        log_config=None,
    )


@app.command("free-slots")
def free_slots(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD) in the resource timezone")],
    timezone: TimezoneOption = None,
    config_file: ConfigOption = None,
    store: StoreOption = None,
):
    """
    List free slots of a day.

    Examples:

        appointment-scheduler free-slots 2024-06-10
        appointment-scheduler free-slots 2024-06-10 --timezone Asia/Kolkata
    """
    settings = _load_settings(config_file, store)

    try:
        service = _build_service(settings)
        slots = asyncio.run(service.free_slots(date, timezone))
    except SchedulingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    tz = timezone or settings.client_timezone

    if not slots:
        console.print(f"\n[yellow]⚠ No free slots on {date}.[/yellow]\n")
        return

    table = Table(
        title=f"Free slots on {date} ({tz})",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Start", style="bold green")
    table.add_column("End", style="dim")

    for slot in slots:
        table.add_row(slot.start.isoformat(), slot.end.isoformat())

    console.print()
    console.print(table)
    console.print()


@app.command()
def book(
    date_time: Annotated[str, typer.Argument(help="Start, e.g. 2024-06-10T09:00:00-04:00 or 2024-06-10 09:00")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Duration in minutes. Defaults to the slot duration")] = None,
    timezone: TimezoneOption = None,
    config_file: ConfigOption = None,
    store: StoreOption = None,
):
    """
    Book an appointment.
    """
    settings = _load_settings(config_file, store)
    minutes = duration if duration is not None else settings.slot_duration

    try:
        service = _build_service(settings)
        booking = asyncio.run(service.create_event(date_time, minutes, timezone))
    except SchedulingError as e:
        console.print(f"[bold red]✗ Booking rejected:[/bold red] {e}")
        raise typer.Exit(1)

    event = booking.to_dict(timezone or settings.client_timezone)
    console.print(
        f"\n[bold green]✓ Event created[/bold green] at {event['dateTime']} "
        f"for {event['duration']} minutes\n"
    )


@app.command()
def events(
    start_date: Annotated[str, typer.Argument(help="First date (YYYY-MM-DD)")],
    end_date: Annotated[str, typer.Argument(help="Last date (YYYY-MM-DD)")],
    timezone: TimezoneOption = None,
    config_file: ConfigOption = None,
    store: StoreOption = None,
):
    """
    List booked events between two dates.
    """
    settings = _load_settings(config_file, store)

    try:
        service = _build_service(settings)
        bookings = asyncio.run(service.list_events(start_date, end_date, timezone))
    except SchedulingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    tz = timezone or settings.client_timezone

    if not bookings:
        console.print("\n[yellow]No events found.[/yellow]\n")
        return

    table = Table(
        title=f"Events {start_date} - {end_date} ({tz})",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Start", style="bold yellow")
    table.add_column("Duration (min)", justify="right")

    for booking in bookings:
        event = booking.to_dict(tz)
        table.add_row(event["dateTime"], str(event["duration"]))

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]appointment-scheduler[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
