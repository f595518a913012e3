"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Annotated

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.panel import Panel

from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SlotkeeperError
from ..domain.inputs import ReservationFilter
from ..domain.models import ReservationStatus
from ..engine import BookingEngine

app = typer.Typer(
    name="slotkeeper",
    help="Publish bookable slots and admit reservations without double-booking staff",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
):
    """
    Availability and booking for staff-based service businesses.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_engine(config_file: Optional[Path]) -> BookingEngine:
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)
    return BookingEngine.from_config(config)


def _fail(exc: Exception) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {exc}")
    return typer.Exit(1)


@app.command()
def slots(
    business: Annotated[str, typer.Argument(help="Business id")],
    service: Annotated[str, typer.Argument(help="Service id")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Date (YYYY-MM-DD). Defaults to today")] = None,
    staff: Annotated[Optional[str], typer.Option("--staff", "-s", help="Only this staff member")] = None,
    config_file: ConfigOption = None,
):
    """
    List bookable start times for a service on one date.

    Examples:

        slotkeeper slots downtown haircut --date 2024-11-25
        slotkeeper slots downtown haircut --staff ana
    """
    try:
        engine = _load_engine(config_file)
        day = date or pendulum.now(engine.store.config.timezone).to_date_string()

        found = asyncio.run(
            engine.availability.list_available_slots(
                business_id=business,
                service_id=service,
                day=day,
                staff_id=staff,
            )
        )
    except (SlotkeeperError, FileNotFoundError, ValueError) as e:
        raise _fail(e)

    console.print()
    if not found:
        console.print(
            f"[yellow]⚠ No free slots on {day}.[/yellow]\n"
            "Try another date or another staff member."
        )
        console.print()
        return

    table = Table(
        title=f"Free slots on {day}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Time", style="bold yellow")
    table.add_column("Staff")
    table.add_column("Staff id", style="dim")

    for slot in found:
        table.add_row(str(slot.time), slot.staff_name, slot.staff_id)

    console.print(table)
    console.print()


@app.command()
def book(
    business: Annotated[str, typer.Argument(help="Business id")],
    service: Annotated[str, typer.Argument(help="Service id")],
    staff: Annotated[str, typer.Argument(help="Staff id")],
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    name: Annotated[str, typer.Option("--name", help="Customer name")],
    email: Annotated[str, typer.Option("--email", help="Customer email")],
    phone: Annotated[str, typer.Option("--phone", help="Customer phone")],
    notes: Annotated[Optional[str], typer.Option("--notes", help="Notes for the appointment")] = None,
    config_file: ConfigOption = None,
):
    """
    Book a slot for a customer.
    """
    try:
        engine = _load_engine(config_file)
        result = asyncio.run(
            engine.booking.request_booking(
                business_id=business,
                staff_id=staff,
                service_id=service,
                day=date,
                time=time,
                customer={"name": name, "email": email, "phone": phone, "notes": notes},
            )
        )
    except (SlotkeeperError, FileNotFoundError, ValueError) as e:
        raise _fail(e)

    if not result.committed:
        console.print(f"[bold red]✗ Booking rejected ({result.reason.value})[/bold red]")
        if result.detail:
            console.print(f"  {result.detail}")
        console.print("Pick another slot with [bold]slotkeeper slots[/bold] and try again.")
        raise typer.Exit(1)

    reservation = result.reservation
    console.print(Panel.fit(
        f"[bold green]✓ Booking confirmed[/bold green]\n\n"
        f"[bold]Reservation:[/bold] {reservation.id}\n"
        f"[bold]When:[/bold] {reservation.date} {reservation.start_time}-{reservation.end_time}\n"
        f"[bold]Customer:[/bold] {reservation.customer_name} ({reservation.customer_email})",
        title="✓ Booking"
    ))


@app.command()
def cancel(
    reservation_id: Annotated[str, typer.Argument(help="Reservation id")],
    reason: Annotated[Optional[str], typer.Option("--reason", help="Cancellation reason")] = None,
    force: Annotated[bool, typer.Option("--force", help="Ignore the cancellation window")] = False,
    config_file: ConfigOption = None,
):
    """
    Cancel a confirmed reservation.
    """
    try:
        engine = _load_engine(config_file)
        asyncio.run(
            engine.booking.cancel_booking(reservation_id, reason=reason, enforce_window=not force)
        )
    except (SlotkeeperError, FileNotFoundError, ValueError) as e:
        raise _fail(e)

    console.print(f"\n[green]✓ Reservation {reservation_id} cancelled.[/green]\n")


@app.command()
def reschedule(
    reservation_id: Annotated[str, typer.Argument(help="Reservation id")],
    date: Annotated[str, typer.Argument(help="New date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="New start time (HH:MM)")],
    config_file: ConfigOption = None,
):
    """
    Move a confirmed reservation to a new date and time.
    """
    try:
        engine = _load_engine(config_file)
        result = asyncio.run(
            engine.booking.reschedule_booking(reservation_id, day=date, time=time)
        )
    except (SlotkeeperError, FileNotFoundError, ValueError) as e:
        raise _fail(e)

    if not result.committed:
        console.print(f"[bold red]✗ Reschedule rejected ({result.reason.value})[/bold red]")
        raise typer.Exit(1)

    moved = result.reservation
    console.print(f"\n[green]✓ Reservation {moved.id} moved to {moved.date} {moved.start_time}.[/green]\n")


@app.command()
def reservations(
    business: Annotated[Optional[str], typer.Argument(help="Business id")] = None,
    staff: Annotated[Optional[str], typer.Option("--staff", "-s", help="Staff id")] = None,
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Date (YYYY-MM-DD)")] = None,
    status: Annotated[Optional[ReservationStatus], typer.Option("--status", help="Reservation status")] = None,
    email: Annotated[Optional[str], typer.Option("--email", help="Customer email")] = None,
    config_file: ConfigOption = None,
):
    """
    List reservations matching the given filters.
    """
    try:
        engine = _load_engine(config_file)
        query = ReservationFilter.build(
            business_id=business,
            staff_id=staff,
            date=date,
            status=status,
            customer_email=email,
        )
        found = asyncio.run(engine.booking.list_reservations(query))
    except (SlotkeeperError, FileNotFoundError, ValueError) as e:
        raise _fail(e)

    if not found:
        console.print("[yellow]No reservations found.[/yellow]")
        return

    table = Table(title="Reservations", show_header=True, header_style="bold cyan")
    table.add_column("Id", style="dim")
    table.add_column("Date")
    table.add_column("Time", style="bold yellow")
    table.add_column("Staff")
    table.add_column("Service")
    table.add_column("Customer")
    table.add_column("Status")

    for r in found:
        table.add_row(
            r.id,
            r.date.isoformat(),
            f"{r.start_time}-{r.end_time}",
            r.staff_id,
            r.service_id,
            r.customer_name,
            r.status.value,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def staff(
    business: Annotated[str, typer.Argument(help="Business id")],
    config_file: ConfigOption = None,
):
    """
    List the staff members of a business.
    """
    try:
        config_path = config_file or get_default_config_path()
        config = AppConfig.load_from_yaml(config_path)
    except (FileNotFoundError, ValueError) as e:
        raise _fail(e)

    business_config = config.find_business(business)
    if business_config is None:
        raise _fail(ValueError(f"Unknown business: {business}"))

    if not business_config.staff:
        console.print("[yellow]No staff members configured for this business.[/yellow]")
        return

    table = Table(
        title=f"Staff of {business_config.display_name()}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Id", style="bold yellow")
    table.add_column("Name")
    table.add_column("Services", style="dim")
    table.add_column("Active")

    for member in business_config.staff:
        table.add_row(
            member.id,
            member.name,
            ", ".join(member.services),
            "yes" if member.active else "no",
        )

    console.print()
    console.print(table)
    console.print()


if __name__ == "__main__":
    app()
