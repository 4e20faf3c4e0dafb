"""
Main CLI application using Typer.
"""

import asyncio
from pathlib import Path
from typing import Annotated, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from ..adapters.mock_backend import MockBackend
from ..adapters.supabase_backend import SupabaseBackend
from ..config import AppConfig, load_config
from ..domain.analytics import AnalyticsAggregator, AnalyticsReport
from ..domain.exceptions import SalonBookerError
from ..domain.models import (
    MAX_RATING,
    MIN_RATING,
    AppointmentStatus,
    PaymentMethod,
    PaymentStatus,
    format_time_of_day,
)
from ..domain.slot_calculator import SlotCalculator
from ..logging_setup import setup_logging
from ..services.access import AccessService
from ..services.analytics import AnalyticsService
from ..services.availability import AvailabilityService
from ..services.booking import BookingService
from ..services.notifications import NotificationService
from ..services.payments import PaymentService
from ..services.reminders import ReminderScheduler, ReminderService
from ..services.reviews import ReviewService

app = typer.Typer(
    name="salonbooker",
    help="Salon appointment availability, booking, payments, reviews, reminders and analytics",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use the bundled demo data instead of the backend.")]
ActorOption = Annotated[str, typer.Option("--as", help="User id the action is performed for.")]


def _load(config_file: Optional[Path], mock: bool):
    """Load configuration and build the backend (mock or Supabase)."""
    config = load_config(config_file, required=not mock)
    setup_logging(config.log_level)

    if mock:
        console.print("[yellow]⚠  MOCK MODE: using demo data[/yellow]\n")
        backend = MockBackend(timezone=config.timezone)
    else:
        backend = SupabaseBackend.from_config(config)

    return config, backend


def _availability(config: AppConfig, backend) -> AvailabilityService:
    return AvailabilityService(
        catalog=backend,
        schedule=backend,
        appointments=backend,
        slot_calculator=SlotCalculator(step_minutes=config.booking.slot_step_minutes),
        timezone=config.timezone,
    )


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


@app.command()
def slots(
    staff_id: Annotated[str, typer.Argument(help="Staff member id")],
    service_id: Annotated[str, typer.Argument(help="Service id")],
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List the bookable start times for a staff member, service and date.

    Examples:

        salonbooker slots emp-ana svc-cut 2025-03-10 --mock
    """
    try:
        config, backend = _load(config_file, mock)
        available = asyncio.run(_availability(config, backend).get_available_slots(staff_id, service_id, date))
    except (SalonBookerError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not available:
        console.print("[yellow]⚠ No available times for this date.[/yellow]")
        return

    console.print(f"[bold green]✓ {len(available)} available time(s) on {date}:[/bold green]\n")
    console.print("  " + "  ".join(available))


@app.command()
def book(
    staff_id: Annotated[str, typer.Argument(help="Staff member id")],
    service_id: Annotated[str, typer.Argument(help="Service id")],
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    salon_id: Annotated[str, typer.Option("--salon", help="Salon id")],
    user_id: ActorOption,
    client_id: Annotated[Optional[str], typer.Option("--client", help="Client id, defaults to the acting user")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Notes for the salon")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Book an appointment at a free start time.
    """
    async def _book(config: AppConfig, backend):
        actor = await AccessService(backend).resolve_actor(user_id)
        service = BookingService(store=backend, availability=_availability(config, backend), timezone=config.timezone)
        return await service.create_booking(
            actor,
            salon_id=salon_id,
            client_id=client_id or user_id,
            staff_id=staff_id,
            service_id=service_id,
            date=date,
            start_time=start_time,
            notes=notes,
        )

    try:
        config, backend = _load(config_file, mock)
        appointment = asyncio.run(_book(config, backend))
    except (SalonBookerError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(
        f"[bold green]✓ Booked[/bold green] {appointment.service_name or service_id} on {appointment.date} "
        f"{format_time_of_day(appointment.start_time)}-{format_time_of_day(appointment.end_time)} "
        f"(id {appointment.id}, {appointment.status.value})"
    )


@app.command()
def status(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    new_status: Annotated[AppointmentStatus, typer.Argument(help="New status")],
    user_id: ActorOption,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Change the status of an appointment (confirm, cancel, complete, ...).
    """
    async def _update(config: AppConfig, backend):
        actor = await AccessService(backend).resolve_actor(user_id)
        service = BookingService(store=backend, availability=_availability(config, backend), timezone=config.timezone)
        return await service.update_status(actor, appointment_id, new_status)

    try:
        config, backend = _load(config_file, mock)
        appointment = asyncio.run(_update(config, backend))
    except (SalonBookerError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(f"[green]✓ Appointment {appointment.id} is now {appointment.status.value}[/green]")


@app.command()
def review(
    appointment_id: Annotated[str, typer.Argument(help="Completed appointment id")],
    rating: Annotated[int, typer.Argument(min=MIN_RATING, max=MAX_RATING, help="Rating from 1 to 5")],
    user_id: ActorOption,
    comment: Annotated[Optional[str], typer.Option("--comment", help="Free text comment")] = None,
    preferences: Annotated[Optional[List[str]], typer.Option("--pref", help="Style preference (repeatable)")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Review a completed appointment (the appointment's client only).
    """
    async def _review(config: AppConfig, backend):
        actor = await AccessService(backend).resolve_actor(user_id)
        service = ReviewService(store=backend, timezone=config.timezone)
        return await service.create_review(actor, appointment_id, rating, comment, preferences or [])

    try:
        config, backend = _load(config_file, mock)
        created = asyncio.run(_review(config, backend))
    except (SalonBookerError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(f"[green]✓ Thanks! Review {created.id} saved ({'★' * created.rating})[/green]")


@app.command()
def pay(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    user_id: ActorOption,
    method: Annotated[PaymentMethod, typer.Option("--method", help="cash or transfer")] = PaymentMethod.CASH,
    amount: Annotated[Optional[float], typer.Option("--amount", help="Defaults to the appointment price")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Payment notes")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Record a cash or transfer payment for an appointment (staff only).
    """
    async def _pay(config: AppConfig, backend):
        actor = await AccessService(backend).resolve_actor(user_id)
        service = PaymentService(store=backend, timezone=config.timezone)
        return await service.record_payment(actor, appointment_id, method, amount, notes)

    try:
        config, backend = _load(config_file, mock)
        payment = asyncio.run(_pay(config, backend))
    except (SalonBookerError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(
        f"[green]✓ Payment {payment.id}: {payment.amount:.2f} by {payment.method.value} "
        f"({payment.status.value}, ref {payment.transaction_id})[/green]"
    )


@app.command("payment-status")
def payment_status(
    payment_id: Annotated[str, typer.Argument(help="Payment id")],
    new_status: Annotated[PaymentStatus, typer.Argument(help="New payment status")],
    user_id: ActorOption,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Correct the status of a payment (owners and admins only).
    """
    async def _update(config: AppConfig, backend):
        actor = await AccessService(backend).resolve_actor(user_id)
        service = PaymentService(store=backend, timezone=config.timezone)
        return await service.update_payment_status(actor, payment_id, new_status)

    try:
        config, backend = _load(config_file, mock)
        payment = asyncio.run(_update(config, backend))
    except (SalonBookerError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(f"[green]✓ Payment {payment.id} is now {payment.status.value}[/green]")


@app.command()
def notifications(
    user_id: ActorOption,
    read_all: Annotated[bool, typer.Option("--read-all", help="Mark all notifications as read")] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List your notifications, newest first.
    """
    async def _list(backend):
        actor = await AccessService(backend).resolve_actor(user_id)
        service = NotificationService(backend)
        items = await service.get_notifications(actor)
        marked = await service.mark_all_as_read(actor) if read_all else 0
        return items, marked

    try:
        _, backend = _load(config_file, mock)
        items, marked = asyncio.run(_list(backend))
    except (SalonBookerError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not items:
        console.print("[yellow]No notifications.[/yellow]")
        return

    table = Table(title="Notifications", show_header=True, header_style="bold cyan")
    table.add_column("", width=1)
    table.add_column("When")
    table.add_column("Title", style="bold")
    table.add_column("Message")
    for item in items:
        when = item.created_at.format("YYYY-MM-DD HH:mm") if item.created_at else ""
        table.add_row("" if item.is_read else "●", when, item.title, item.message)
    console.print(table)

    if read_all:
        console.print(f"[green]✓ {marked} notification(s) marked as read[/green]")


def _print_report(report: AnalyticsReport) -> None:
    overview = report.overview
    console.print("[bold cyan]📊 Overview[/bold cyan]")
    console.print(f"   Appointments: {overview.total_appointments}")
    console.print(f"   Revenue: {overview.total_revenue:.2f}")
    console.print(f"   Average rating: {overview.average_rating}")
    console.print(f"   Clients: {overview.total_clients}")
    console.print(f"   Client retention: {report.performance.client_retention}%")
    console.print(f"   Average appointment value: {report.performance.average_appointment_value:.2f}")
    console.print()

    services = Table(title="Popular services", show_header=True, header_style="bold cyan")
    services.add_column("Service", style="bold yellow")
    services.add_column("Bookings", justify="right")
    services.add_column("Revenue", justify="right")
    for bucket in report.performance.popular_services:
        services.add_row(bucket.key, str(bucket.count), f"{bucket.revenue:.2f}")
    console.print(services)

    staff = Table(title="Top staff", show_header=True, header_style="bold cyan")
    staff.add_column("Staff", style="bold yellow")
    staff.add_column("Bookings", justify="right")
    staff.add_column("Revenue", justify="right")
    staff.add_column("Rating", justify="right")
    for member in report.performance.top_staff:
        staff.add_row(member.name, str(member.bookings), f"{member.revenue:.2f}", str(member.rating))
    console.print(staff)

    methods = Table(title="Revenue by payment method", show_header=True, header_style="bold cyan")
    methods.add_column("Method", style="bold yellow")
    methods.add_column("Payments", justify="right")
    methods.add_column("Amount", justify="right")
    for bucket in report.revenue.by_method:
        methods.add_row(bucket.key, str(bucket.count), f"{bucket.amount:.2f}")
    console.print(methods)


@app.command()
def analytics(
    salon_id: Annotated[str, typer.Argument(help="Salon id")],
    user_id: ActorOption,
    start: Annotated[Optional[str], typer.Option("--start", help="First day (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Last day (YYYY-MM-DD)")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show summary statistics for a salon (owners and admins only).
    """
    async def _report(backend):
        actor = await AccessService(backend).resolve_actor(user_id)
        service = AnalyticsService(store=backend, aggregator=AnalyticsAggregator())
        return await service.get_analytics(actor, salon_id, start, end)

    try:
        _, backend = _load(config_file, mock)
        report = asyncio.run(_report(backend))
    except (SalonBookerError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print()
    _print_report(report)
    console.print()


def _reminder_service(config: AppConfig, backend) -> ReminderService:
    return ReminderService(store=backend, lead_hours=config.reminders.lead_hours, timezone=config.timezone)


@app.command()
def remind(
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Send reminders for confirmed appointments starting soon (one pass).
    """
    try:
        config, backend = _load(config_file, mock)
        sent = asyncio.run(_reminder_service(config, backend).send_due_reminders())
    except (SalonBookerError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(f"[green]✓ {sent} reminder(s) sent[/green]")


@app.command()
def scheduler(
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Run the reminder scheduler until interrupted (Ctrl+C).
    """
    async def _serve(reminders: ReminderScheduler):
        reminders.start()
        try:
            await asyncio.Event().wait()
        finally:
            await reminders.stop()

    try:
        config, backend = _load(config_file, mock)
        reminders = ReminderScheduler(
            _reminder_service(config, backend),
            interval_seconds=config.reminders.interval_minutes * 60,
        )
        console.print("[bold]Reminder scheduler running.[/bold] Press Ctrl+C to stop.")
        asyncio.run(_serve(reminders))
    except KeyboardInterrupt:
        console.print("\n[green]Scheduler stopped.[/green]")
    except (SalonBookerError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]salonbooker[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
