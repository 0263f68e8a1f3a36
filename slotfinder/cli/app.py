"""
Main CLI application using Typer.
"""

from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..adapters.graph_authenticator import GraphAuthenticator
from ..adapters.graph_client import GraphCalendarGateway
from ..adapters.mock_gateway import MockCalendarGateway
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import InteractionRequiredError, NoAvailabilityError, SlotFinderError
from ..domain.formatting import format_duration, format_time_slot
from ..domain.models import TimeInterval
from ..log import configure_logging
from ..services.booking import BookingService

app = typer.Typer(
    name="slotfinder",
    help="Offer and book free appointment slots from a Microsoft 365 calendar",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
MockOption = Annotated[
    Optional[Path],
    typer.Option("--mock", help="Serve busy times from this JSON file instead of Microsoft Graph."),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")]


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    try:
        return AppConfig.load_from_yaml(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _build_authenticator(config: AppConfig) -> GraphAuthenticator:
    return GraphAuthenticator(
        client_id=config.client_id,
        tenant_id=config.tenant_id,
        client_secret=config.client_secret,
        authority_url=config.get_authority_url()
    )


def _show_device_code(flow: dict) -> None:
    console.print("\n[bold cyan]🔐 Microsoft Authentication Required[/bold cyan]")
    console.print("[bold]Please follow these steps:[/bold]")
    console.print(f"1. Open a browser and go to: [bold cyan]{flow['verification_uri']}[/bold cyan]")
    console.print(f"2. Enter this code: [bold yellow]{flow['user_code']}[/bold yellow]")
    console.print("3. Sign in with the account that owns the booking calendar\n")
    console.print("[dim]Waiting for authentication...[/dim]\n")


def _build_service(config: AppConfig, mock: Optional[Path]) -> BookingService:
    """Construct and initialize the gateway, then wire the service."""
    if mock:
        console.print(f"[yellow]⚠  MOCK MODE: using busy times from {mock}[/yellow]\n")
        gateway = MockCalendarGateway(data_file=mock, timezone=config.timezone)
    else:
        gateway = GraphCalendarGateway(
            authenticator=_build_authenticator(config),
            calendar_owner=config.calendar_owner,
            timezone=config.timezone,
            default_timeout=config.request_timeout_seconds,
        )
    gateway.initialize()

    return BookingService(
        gateway=gateway,
        policy=config.to_policy(),
        defaults=config.defaults,
        timeout=config.request_timeout_seconds,
    )


def _parse_start(value: str, tz: str) -> pendulum.DateTime:
    try:
        return pendulum.parse(value, tz=tz).in_timezone(tz)
    except ValueError as e:
        console.print(f"[red]Could not parse start time {value!r}: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def find(
    config_file: ConfigOption = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Slot duration in minutes")] = None,
    count: Annotated[Optional[int], typer.Option("--count", "-n", help="Number of slots to offer")] = None,
    days: Annotated[Optional[int], typer.Option("--days", help="Length of the search window in days")] = None,
    mock: MockOption = None,
    verbose: VerboseOption = False,
):
    """
    Find the next free appointment slots.

    Examples:

        slotfinder find
        slotfinder find --duration 30 --count 5
        slotfinder find --days 14 --mock busy.json
    """
    configure_logging(verbose)
    config = _load_config(config_file)
    tz = config.timezone

    try:
        service = _build_service(config, mock)
        request = service.build_request(
            duration_minutes=duration,
            slots_needed=count,
            window_days=days,
        )

        console.print("[bold cyan]📊 Search:[/bold cyan]")
        console.print(
            f"   Window: {request.window_start.in_timezone(tz).format('DD.MM.YYYY HH:mm')} - "
            f"{request.window_end.in_timezone(tz).format('DD.MM.YYYY HH:mm')}"
        )
        console.print(f"   Duration: {format_duration(request.duration_minutes)}")
        console.print(
            f"   Business hours: {request.policy.start_hour}:00 - {request.policy.end_hour}:00 ({tz})"
        )
        console.print()

        slots = service.generate(request)
    except NoAvailabilityError as e:
        console.print(f"[yellow]⚠ {e}[/yellow]")
        raise typer.Exit(2)
    except SlotFinderError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    now = pendulum.now(tz)
    table = Table(
        title=f"{len(slots)} available slot(s)",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("#", style="bold yellow")
    table.add_column("When")
    table.add_column("Start (ISO)", style="dim")
    table.add_column("Slot ID", style="dim")

    for idx, slot in enumerate(slots, 1):
        table.add_row(
            str(idx),
            format_time_slot(slot.start, slot.end, now, tz),
            slot.start.to_iso8601_string(),
            slot.slot_id,
        )

    console.print(table)
    console.print()


@app.command()
def book(
    start: Annotated[str, typer.Argument(help="Slot start, e.g. 2024-11-25T10:00")],
    config_file: ConfigOption = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Slot duration in minutes")] = None,
    subject: Annotated[str, typer.Option("--subject", help="Event subject")] = "Consultation",
    location: Annotated[str, typer.Option("--location", help="Event location or meeting link")] = "",
    mock: MockOption = None,
    verbose: VerboseOption = False,
):
    """
    Book a slot after re-checking that it is still free.
    """
    configure_logging(verbose)
    config = _load_config(config_file)
    slot_start = _parse_start(start, config.timezone)
    minutes = duration if duration is not None else config.defaults.duration_minutes

    try:
        interval = TimeInterval(start=slot_start, end=slot_start.add(minutes=minutes))
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    try:
        service = _build_service(config, mock)
        created = service.book_slot(interval, subject=subject, location=location)
    except SlotFinderError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(Panel.fit(
        f"[bold green]✓ Booked {interval}[/bold green]\n\n"
        f"[bold]Event ID:[/bold] {created.event_id}\n"
        f"[bold]Link:[/bold] {created.html_link or 'N/A'}",
        title="✓ Booking"
    ))


@app.command()
def reschedule(
    event_id: Annotated[str, typer.Argument(help="Calendar event ID")],
    start: Annotated[str, typer.Argument(help="New start, e.g. 2024-11-26T14:00")],
    config_file: ConfigOption = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Slot duration in minutes")] = None,
    verbose: VerboseOption = False,
):
    """
    Move a booking to a new slot.
    """
    configure_logging(verbose)
    config = _load_config(config_file)
    slot_start = _parse_start(start, config.timezone)
    minutes = duration if duration is not None else config.defaults.duration_minutes

    try:
        service = _build_service(config, None)
        service.reschedule(event_id, TimeInterval(start=slot_start, end=slot_start.add(minutes=minutes)))
    except (SlotFinderError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(f"\n[green]✓ Event {event_id} moved to {slot_start.format('DD.MM.YYYY HH:mm')}.[/green]\n")


@app.command()
def cancel(
    event_id: Annotated[str, typer.Argument(help="Calendar event ID")],
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Cancel a booking.
    """
    configure_logging(verbose)
    config = _load_config(config_file)

    try:
        _build_service(config, None).cancel(event_id)
    except SlotFinderError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(f"\n[green]✓ Event {event_id} cancelled.[/green]\n")


@app.command()
def test_auth(
    config_file: ConfigOption = None,
    force: bool = typer.Option(
        False,
        "--force",
        help="Force re-authentication"
    )
):
    """
    Test Microsoft Graph authentication.
    """
    config = _load_config(config_file)

    console.print("\n[bold]Testing Microsoft Graph authentication...[/bold]\n")

    try:
        authenticator = _build_authenticator(config)
        if force:
            authenticator.sign_in(_show_device_code)
        else:
            try:
                authenticator.get_access_token()
            except InteractionRequiredError:
                authenticator.sign_in(_show_device_code)

        gateway = GraphCalendarGateway(
            authenticator=authenticator,
            calendar_owner=config.calendar_owner,
            timezone=config.timezone,
            default_timeout=config.request_timeout_seconds,
        )
        gateway.initialize()
        user_info = gateway.profile
    except SlotFinderError as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)

    if authenticator.insecure_storage_warning:
        console.print(f"[yellow]{authenticator.insecure_storage_warning}[/yellow]")

    console.print(Panel.fit(
        f"[bold green]✓ Authentication successful![/bold green]\n\n"
        f"[bold]Calendar:[/bold] {user_info.get('displayName', 'N/A')}\n"
        f"[bold]Email:[/bold] {user_info.get('mail') or user_info.get('userPrincipalName', 'N/A')}",
        title="✓ Connection test"
    ))
    console.print()


@app.command()
def clear_cache(config_file: ConfigOption = None):
    """
    Clear the authentication token cache.
    """
    config = _load_config(config_file)

    authenticator = GraphAuthenticator(
        client_id=config.client_id,
        tenant_id=config.tenant_id
    )

    authenticator.clear_cache()
    console.print("\n[green]✓ Token cache cleared.[/green]")
    console.print("You will need to re-authenticate on the next call.\n")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotfinder[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
