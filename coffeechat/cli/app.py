"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.google_authenticator import GoogleAuthenticator
from ..adapters.google_calendar_client import GoogleCalendarClient
from ..adapters.mock_calendar_client import MockCalendarClient
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import CoffeeChatError
from ..domain.free_busy import is_valid_hour_range
from ..domain.models import AvailabilitySettings
from ..mailer.sender import EmailSender
from ..mailer.template import EmailTemplate
from ..services.slot_finder import CalendarClientProtocol, SlotFinderService

app = typer.Typer(
    name="coffeechat",
    help="Find free time in your Google Calendar and send coffee chat invitations",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
BufferOption = Annotated[Optional[int], typer.Option("--buffer", "-b", min=0, max=60, help="Minutes kept free before and after each event")]
StartHourOption = Annotated[Optional[int], typer.Option("--start-hour", min=0, max=23, help="Earliest hour of the day to offer")]
EndHourOption = Annotated[Optional[int], typer.Option("--end-hour", min=1, max=23, help="Hour of the day when offered slots must end")]
DaysOption = Annotated[Optional[int], typer.Option("--days", "-d", min=1, max=60, help="Number of days to search, starting now")]
MockOption = Annotated[Optional[Path], typer.Option("--mock", help="Read busy periods from a JSON file instead of Google Calendar")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show progress logging")]
DebugOption = Annotated[bool, typer.Option("--debug", help="Show debug logging")]


def _configure_logging(verbose: bool, debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _resolve_settings(
    config: AppConfig,
    buffer: Optional[int],
    start_hour: Optional[int],
    end_hour: Optional[int],
) -> AvailabilitySettings:
    """
    Merge command line overrides into the configured search settings.
    """
    defaults = config.calendar.availability_settings()
    settings = AvailabilitySettings(
        buffer_minutes=buffer if buffer is not None else defaults.buffer_minutes,
        day_start_hour=start_hour if start_hour is not None else defaults.day_start_hour,
        day_end_hour=end_hour if end_hour is not None else defaults.day_end_hour,
        min_slot_minutes=defaults.min_slot_minutes,
    )

    if not is_valid_hour_range(settings.day_start_hour, settings.day_end_hour):
        console.print(
            f"[bold red]Error:[/bold red] start hour ({settings.day_start_hour}) "
            f"must be before end hour ({settings.day_end_hour})."
        )
        raise typer.Exit(1)

    return settings


def _build_calendar_client(config: AppConfig, mock: Optional[Path]) -> CalendarClientProtocol:
    if mock:
        console.print(f"[yellow]⚠  MOCK MODE: using busy periods from {mock}[/yellow]\n")
        return MockCalendarClient(data_file=mock)

    authenticator = GoogleAuthenticator(
        credentials_path=config.calendar.credentials_path,
        cache_file=config.calendar.token_cache_path,
    )
    access_token = authenticator.get_access_token(force_refresh=False)
    if authenticator.insecure_storage_warning:
        console.print(f"[yellow]{authenticator.insecure_storage_warning}[/yellow]")
    return GoogleCalendarClient(access_token=access_token)


def _find_slots(
    config: AppConfig,
    settings: AvailabilitySettings,
    mock: Optional[Path],
    days: Optional[int] = None,
) -> List[str]:
    client = _build_calendar_client(config, mock)
    service = SlotFinderService(
        calendar_client=client,
        timezone=config.calendar.timezone,
        lookahead_days=days or config.calendar.lookahead_days,
        calendar_id=config.calendar.calendar_id,
    )
    with console.status("Fetching available slots..."):
        return service.find_available_slots(settings)


@app.command()
def slots(
    config_file: ConfigOption = None,
    buffer: BufferOption = None,
    start_hour: StartHourOption = None,
    end_hour: EndHourOption = None,
    days: DaysOption = None,
    mock: MockOption = None,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
):
    """
    Show the free slots of the coming days.
    
    Examples:
    
        coffeechat slots
        coffeechat slots --buffer 30 --start-hour 10 --end-hour 18
        coffeechat slots --mock busy.json
    """
    _configure_logging(verbose, debug)

    try:
        config = _load_config(config_file)
        settings = _resolve_settings(config, buffer, start_hour, end_hour)

        console.print("[bold cyan]📊 Summary:[/bold cyan]")
        console.print(f"   Timezone: {config.calendar.timezone}")
        console.print(f"   Lookahead: {days or config.calendar.lookahead_days} days")
        console.print(f"   Buffer: {settings.buffer_minutes} minutes")
        console.print(f"   Hours: {settings.day_start_hour}:00 - {settings.day_end_hour}:00")
        console.print()

        available = _find_slots(config, settings, mock, days)

        if not available:
            console.print(
                "[yellow]⚠ No available slots found.[/yellow]\n"
                "Try a smaller buffer or a wider range of hours."
            )
            return

        console.print(f"[bold green]✓ {len(available)} available slot(s):[/bold green]\n")
        for line in available:
            console.print(f"  {line}")
        console.print()

    except (FileNotFoundError, ValueError, CoffeeChatError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def send(
    recipients: Annotated[Optional[List[str]], typer.Argument(help="Recipient names or emails. Defaults to all configured recipients.")] = None,
    config_file: ConfigOption = None,
    buffer: BufferOption = None,
    start_hour: StartHourOption = None,
    end_hour: EndHourOption = None,
    days: DaysOption = None,
    mock: MockOption = None,
    template_file: Annotated[Optional[Path], typer.Option("--template", "-t", help="Template file. Defaults to sender.template_path from the config")] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Print the emails instead of sending them")] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Send without asking for confirmation")] = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
):
    """
    Send coffee chat invitations listing your free slots.
    
    Examples:
    
        coffeechat send --dry-run
        coffeechat send alice bob@example.com --buffer 30
    """
    _configure_logging(verbose, debug)

    try:
        config = _load_config(config_file)
        settings = _resolve_settings(config, buffer, start_hour, end_hour)
        selected = config.resolve_recipients(recipients or [])

        if not selected:
            console.print("[bold red]Error:[/bold red] No recipients configured or selected.")
            raise typer.Exit(1)

        template = EmailTemplate.load(template_file or config.sender.template_path)
        available = _find_slots(config, settings, mock, days)

        if not available:
            console.print("[yellow]Warning: sending invitations without available slots.[/yellow]")

        if dry_run:
            sender = EmailSender(config.smtp)
            for recipient in selected:
                message = sender.build_message(recipient, config.sender.name, available, template)
                console.print(Panel(
                    message.get_payload(decode=True).decode("utf-8"),
                    title=f"To: {message['To']}",
                    subtitle=message["Subject"],
                ))
            return

        if not config.smtp.is_complete():
            console.print(
                "[bold red]Error:[/bold red] Missing required SMTP settings "
                "(host, user, password, from_email)."
            )
            raise typer.Exit(1)

        if not yes and not typer.confirm(f"Send invitations to {len(selected)} recipient(s)?"):
            raise typer.Exit(0)

        sender = EmailSender(config.smtp)
        with console.status(f"Sending emails to {len(selected)} recipients..."):
            report = sender.send_invitations(selected, config.sender.name, available, template)

        for email in report.sent:
            console.print(f"[green]✓ Sent to {email}[/green]")
        for email, reason in report.failed:
            console.print(f"[red]✗ {email}: {reason}[/red]")

        console.print(f"\n[bold]Sent: {report.success_count}, Failed: {report.error_count}[/bold]\n")
        if report.error_count:
            raise typer.Exit(1)

    except (FileNotFoundError, ValueError, CoffeeChatError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command(name="recipients")
def list_recipients(config_file: ConfigOption = None):
    """
    List all configured recipients.
    """
    try:
        config = _load_config(config_file)
        
        if not config.recipients:
            console.print("[yellow]No recipients defined in the config file.[/yellow]")
            return
        
        table = Table(
            title="Configured recipients",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Name", style="bold yellow")
        table.add_column("E-Mail", style="dim")
        
        for recipient in config.recipients:
            table.add_row(recipient.name, recipient.email)
        
        console.print()
        console.print(table)
        console.print()
    
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def test_auth(
    config_file: ConfigOption = None,
    force: Annotated[bool, typer.Option("--force", help="Force re-authentication")] = False,
):
    """
    Test Google Calendar authentication.
    """
    try:
        config = _load_config(config_file)
        
        console.print("\n[bold]Testing Google Calendar authentication...[/bold]\n")
        
        authenticator = GoogleAuthenticator(
            credentials_path=config.calendar.credentials_path,
            cache_file=config.calendar.token_cache_path,
        )
        access_token = authenticator.get_access_token(force_refresh=force)
        
        client = GoogleCalendarClient(access_token=access_token)
        calendar_id = client.find_primary_calendar_id()
        
        console.print(Panel.fit(
            f"[bold green]✓ Authentication successful![/bold green]\n\n"
            f"[bold]Primary calendar:[/bold] {calendar_id}\n"
            f"[bold]Token storage:[/bold] {authenticator.cache_backend}",
            title="✓ Connection test"
        ))
        console.print()
    
    except (FileNotFoundError, ValueError, CoffeeChatError) as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)


@app.command()
def clear_cache(config_file: ConfigOption = None):
    """
    Clear the authentication token cache.
    """
    try:
        config = _load_config(config_file)
        
        authenticator = GoogleAuthenticator(
            credentials_path=config.calendar.credentials_path,
            cache_file=config.calendar.token_cache_path,
        )
        authenticator.clear_cache()
    
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]coffeechat[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
