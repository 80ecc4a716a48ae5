"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, List, Optional, Tuple

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.api_client import ApiBookingSource, BarbershopApiClient
from ..adapters.json_store import JsonBookingStore
from ..config import AppConfig, load_config
from ..domain.exceptions import BarberSlotsError, SlotConflictError
from ..domain.models import WEEKDAY_NAMES, CalendarDay, DayStatus, SlotOption, as_date
from ..services.booking_service import BookingRequest, BookingService

app = typer.Typer(
    name="barberslots",
    help="Check barbershop availability and book appointments without conflicts",
    add_completion=False
)

console = Console()

DEFAULT_BOOKINGS_FILE = Path("bookings.json")

DAY_STYLES = {
    DayStatus.AVAILABLE: "bold green",
    DayStatus.FULL: "red",
    DayStatus.CLOSED: "dim",
    DayStatus.DISABLED: "dim strike",
}

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
BookingsOption = Annotated[Optional[Path], typer.Option("--bookings", "-b", help="JSON bookings file")]
ApiOption = Annotated[Optional[str], typer.Option("--api", help="Read bookings and hours from the site API at this URL")]
TokenOption = Annotated[Optional[str], typer.Option("--token", envvar="BARBERSLOTS_ADMIN_TOKEN", help="Admin session token for the site API")]
DurationOption = Annotated[Optional[int], typer.Option("--duration", "-d", help="Appointment length in minutes")]
ServiceOption = Annotated[Optional[List[str]], typer.Option("--service", "-s", help="Service key; repeat to combine services")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _fail(message: str) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {message}")
    return typer.Exit(1)


def _resolve_duration(
    config: AppConfig,
    duration: Optional[int],
    services: Optional[List[str]],
) -> Tuple[int, list]:
    """
    Work out the appointment length from --duration or the chosen services.

    Returns (duration_minutes, resolved_services).
    """
    if services:
        resolved = config.resolve_services(services)
        return sum(service.duration for service in resolved), resolved

    if duration is None:
        raise ValueError("Provide --duration or at least one --service.")
    return duration, []


def _build_service(
    config: AppConfig,
    bookings_file: Optional[Path],
    api_url: Optional[str],
    token: Optional[str] = None,
    writable: bool = False,
) -> BookingService:
    """
    Wire the booking store and engine from CLI options and config.

    Writes always go to the JSON bookings file; the site API is read-only.
    """
    if not writable:
        api_url = api_url or config.data.api_base_url

    if api_url:
        client = BarbershopApiClient(api_url, admin_token=token)
        engine = config.build_engine(client.fetch_business_hours())
        store = ApiBookingSource(client, public=token is None)
    else:
        path = bookings_file or config.data.bookings_file or DEFAULT_BOOKINGS_FILE
        engine = config.build_engine()
        store = JsonBookingStore(path)

    return BookingService(store=store, engine=engine)


def _render_slots(slots: List[SlotOption]) -> Table:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Start", style="bold")
    table.add_column("End")
    table.add_column("Status")

    for slot in slots:
        status = "[green]available[/green]" if slot.available else f"[red]{slot.message}[/red]"
        table.add_row(slot.time, slot.end_time, status)

    return table


def _render_calendar(days: List[CalendarDay], title: str) -> Table:
    """Month grid with Monday as the first column."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    for name in WEEKDAY_NAMES:
        table.add_column(name[:3].title(), justify="right")

    row: List[str] = [""] * days[0].date.weekday()
    for day in days:
        style = DAY_STYLES[day.status]
        row.append(f"[{style}]{day.date.day}[/{style}]")
        if len(row) == 7:
            table.add_row(*row)
            row = []

    if row:
        table.add_row(*(row + [""] * (7 - len(row))))

    return table


@app.command()
def hours(
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Show the weekly business hours and booking rules.
    """
    _configure_logging(verbose)
    try:
        config = load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        raise _fail(str(e))

    table = Table(title="Business hours", show_header=True, header_style="bold cyan")
    table.add_column("Day", style="bold yellow")
    table.add_column("Open")
    table.add_column("Close")
    table.add_column("Overtime", justify="right")

    business_hours = config.get_business_hours()
    for name in WEEKDAY_NAMES:
        day = business_hours.days.get(name)
        if day is None or not day.enabled:
            table.add_row(name.title(), "[dim]closed[/dim]", "", "")
        else:
            table.add_row(name.title(), day.open, day.close, f"{day.overtime_buffer_minutes} min")

    console.print()
    console.print(table)
    console.print(
        f"Buffer after each booking: [bold]{config.booking.buffer_minutes} min[/bold], "
        f"slot granularity: [bold]{config.booking.slot_granularity_minutes} min[/bold]\n"
    )


@app.command()
def services(
    config_file: ConfigOption = None,
):
    """
    List the configured services.
    """
    try:
        config = load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        raise _fail(str(e))

    if not config.services:
        console.print("[yellow]No services defined in the config file.[/yellow]")
        return

    table = Table(title="Services", show_header=True, header_style="bold cyan")
    table.add_column("Key", style="bold yellow")
    table.add_column("Name")
    table.add_column("Duration", justify="right")
    table.add_column("Price", justify="right")

    for service in config.services:
        table.add_row(service.key, service.name, f"{service.duration} min", f"${service.price}")

    console.print()
    console.print(table)
    console.print()


@app.command()
def check(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    duration: DurationOption = None,
    service: ServiceOption = None,
    config_file: ConfigOption = None,
    bookings_file: BookingsOption = None,
    api: ApiOption = None,
    token: TokenOption = None,
    verbose: VerboseOption = False,
):
    """
    Check whether one appointment slot can be booked.

    Examples:

        barberslots check 2025-03-10 10:30 --duration 30

        barberslots check 2025-03-10 10:30 -s premium-haircut -s beard-trim
    """
    _configure_logging(verbose)
    try:
        config = load_config(config_file)
        minutes, _ = _resolve_duration(config, duration, service)
        booking_service = _build_service(config, bookings_file, api, token)
        option = booking_service.check_slot(date, time, minutes)
    except (FileNotFoundError, ValueError, BarberSlotsError) as e:
        raise _fail(str(e))

    if option.available:
        console.print(f"[bold green]✓ {option.date.isoformat()} {option.time}-{option.end_time} is available[/bold green]")
    else:
        console.print(f"[bold red]✗ {option.date.isoformat()} {option.time}-{option.end_time}: {option.message}[/bold red]")
        raise typer.Exit(1)


@app.command()
def slots(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    duration: DurationOption = None,
    service: ServiceOption = None,
    show_all: Annotated[bool, typer.Option("--all", help="Also list unavailable start times")] = False,
    config_file: ConfigOption = None,
    bookings_file: BookingsOption = None,
    api: ApiOption = None,
    token: TokenOption = None,
    verbose: VerboseOption = False,
):
    """
    List the start times offered on one day.
    """
    _configure_logging(verbose)
    try:
        config = load_config(config_file)
        minutes, _ = _resolve_duration(config, duration, service)
        booking_service = _build_service(config, bookings_file, api, token)
        day = as_date(date)
        options = booking_service.day_slots(day, minutes)
    except (FileNotFoundError, ValueError, BarberSlotsError) as e:
        raise _fail(str(e))

    if not options:
        console.print(f"[yellow]Closed on {day.format('dddd, MMMM D, YYYY')}.[/yellow]")
        return

    shown = options if show_all else [option for option in options if option.available]
    if not shown:
        console.print(f"[yellow]⚠ No free slots for {minutes} minutes on {day.isoformat()}.[/yellow]")
        return

    console.print(f"\n[bold cyan]{day.format('dddd, MMMM D, YYYY')}[/bold cyan] ({minutes} min)")
    console.print(_render_slots(shown))
    console.print()


@app.command()
def calendar(
    month: Annotated[Optional[str], typer.Option("--month", "-m", help="Month (YYYY-MM). Defaults to the current month")] = None,
    duration: DurationOption = None,
    service: ServiceOption = None,
    config_file: ConfigOption = None,
    bookings_file: BookingsOption = None,
    api: ApiOption = None,
    token: TokenOption = None,
    verbose: VerboseOption = False,
):
    """
    Show which days of a month still have room for an appointment.
    """
    _configure_logging(verbose)
    try:
        config = load_config(config_file)
        minutes, _ = _resolve_duration(config, duration, service)
        booking_service = _build_service(config, bookings_file, api, token)
        if month:
            start = pendulum.from_format(month, "YYYY-MM")
        else:
            start = booking_service.engine.now()
        days = booking_service.month_calendar(start.year, start.month, minutes)
    except (FileNotFoundError, ValueError, BarberSlotsError) as e:
        raise _fail(str(e))

    console.print()
    console.print(_render_calendar(days, start.format("MMMM YYYY")))
    console.print(
        "[bold green]available[/bold green]  [red]full[/red]  "
        "[dim]closed[/dim]  [dim strike]past[/dim strike]\n"
    )


@app.command()
def book(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    customer: Annotated[str, typer.Option("--customer", help="Customer name")],
    phone: Annotated[str, typer.Option("--phone", help="Customer phone")] = "",
    email: Annotated[str, typer.Option("--email", help="Customer email")] = "",
    notes: Annotated[str, typer.Option("--notes", help="Notes for the barber")] = "",
    duration: DurationOption = None,
    service: ServiceOption = None,
    config_file: ConfigOption = None,
    bookings_file: BookingsOption = None,
    verbose: VerboseOption = False,
):
    """
    Book an appointment after a final conflict check.
    """
    _configure_logging(verbose)
    try:
        config = load_config(config_file)
        minutes, resolved = _resolve_duration(config, duration, service)
        details = {"customer": customer, "phone": phone, "email": email, "notes": notes}
        if resolved:
            request = BookingRequest.from_services(date=date, time=time, services=resolved, **details)
        else:
            request = BookingRequest(date=date, time=time, duration=minutes, **details)

        booking_service = _build_service(config, bookings_file, api_url=None, writable=True)
        booking = booking_service.create_booking(request)

    except SlotConflictError as e:
        console.print(f"[bold red]✗ Time slot conflict:[/bold red] {e}")
        raise typer.Exit(1)

    except (FileNotFoundError, ValueError, BarberSlotsError) as e:
        raise _fail(str(e))

    services_line = ", ".join(booking.services) if booking.services else "-"
    console.print(Panel.fit(
        f"[bold green]✓ Booking confirmed[/bold green]\n\n"
        f"[bold]Booking:[/bold] #{booking.id}\n"
        f"[bold]When:[/bold] {booking.date.format('dddd, MMMM D, YYYY')} {booking.time} ({booking.duration} min)\n"
        f"[bold]Customer:[/bold] {booking.customer}\n"
        f"[bold]Services:[/bold] {services_line}",
        title="Booking"
    ))


@app.command()
def cancel(
    booking_id: Annotated[int, typer.Argument(help="Booking id")],
    config_file: ConfigOption = None,
    bookings_file: BookingsOption = None,
    verbose: VerboseOption = False,
):
    """
    Cancel a booking and free its slot.
    """
    _configure_logging(verbose)
    try:
        config = load_config(config_file)
        booking_service = _build_service(config, bookings_file, api_url=None, writable=True)
        booking = booking_service.cancel_booking(booking_id)
    except (FileNotFoundError, ValueError, BarberSlotsError) as e:
        raise _fail(str(e))

    console.print(f"\n[green]✓ Booking #{booking.id} on {booking.date.isoformat()} at {booking.time} cancelled.[/green]\n")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]barberslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
