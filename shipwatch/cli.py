"""
Command-line interface for the Shipwatch poller.
Provides commands for running the poller and inspecting shipments.
"""

import asyncio
import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from pathlib import Path

from shipwatch import __version__

console = Console()


def _load_config(config_file):
    from shipwatch.config import init_config
    from shipwatch.logging_config import setup_logging

    config = init_config(config_file)
    setup_logging(config, console=False)
    return config


def _print_report(report):
    table = Table(title="Sweep Report")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Candidates", str(report.candidates))
    table.add_row("Processed", str(report.processed))
    table.add_row("Updated", str(report.updated))
    table.add_row("Errored", f"[red]{report.errored}[/red]" if report.errored else "0")
    table.add_row("Skipped", str(report.skipped))
    table.add_row("Truncated", "[yellow]yes[/yellow]" if report.truncated else "no")
    table.add_row("Duration", f"{report.duration_ms} ms")
    console.print(table)

    for label, message in report.errors.items():
        console.print(f"[red]✗ {label}: {message}[/red]")


@click.group()
@click.version_option(version=__version__, prog_name="Shipwatch")
def cli():
    """Shipwatch - shipment status reconciliation poller"""
    pass


@cli.command()
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    help="Path to configuration file"
)
def run(config):
    """Run the poller in foreground mode."""
    console.print(Panel.fit(
        f"[bold blue]Shipwatch Poller v{__version__}[/bold blue]\n"
        "Press Ctrl+C to stop",
        title="Starting Poller"
    ))

    from shipwatch.core import run_service
    run_service(config)


@cli.command()
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to configuration file")
def sweep(config):
    """Run a single sweep and print its report."""
    from shipwatch.core import sweep_once

    poller_config = _load_config(config)
    console.print("[bold]Running sweep...[/bold]")

    report = asyncio.run(sweep_once(poller_config))
    if report is None:
        console.print("[red]✗ Sweep failed, see the error log[/red]")
        raise SystemExit(1)
    _print_report(report)


@cli.command()
def status():
    """Show poller configuration."""
    console.print(Panel.fit(
        f"[bold]Shipwatch Poller v{__version__}[/bold]",
        title="Status"
    ))

    from shipwatch.config import PollerConfig
    config = PollerConfig.from_env()

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Poller ID", config.poller_id)
    table.add_row("Store Backend", config.store_backend)
    table.add_row("Backend URL", config.backend_api_url or "[dim]Not set[/dim]")
    table.add_row("Sweep Interval", f"{config.poll_interval_minutes} min")
    table.add_row("Batch Size", str(config.batch_size))
    table.add_row("Sweep Budget", f"{config.sweep_budget_seconds}s")
    table.add_row("Active Statuses", ", ".join(config.active_statuses))
    table.add_row("Log File", config.log_file)
    console.print(table)

    carriers = Table(title="Carrier APIs")
    carriers.add_column("Carrier", style="cyan")
    carriers.add_column("Configured")

    configured = {
        "eShipPlus": bool(config.eshipplus_host and config.eshipplus_username),
        "Canpar": bool(config.canpar_username and config.canpar_password),
        "Polaris Transportation": bool(config.polaris_host and config.polaris_api_key),
        "FedEx": bool(config.fedex_client_id and config.fedex_client_secret),
        "UPS": bool(config.ups_client_id and config.ups_client_secret),
    }
    for name, ok in configured.items():
        carriers.add_row(name, "[green]✓[/green]" if ok else "[dim]✗[/dim]")
    console.print(carriers)

    for problem in config.validate():
        color = "yellow" if problem.startswith("Warning:") else "red"
        console.print(f"[{color}]{problem}[/{color}]")


@cli.command()
@click.argument("shipment_id")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to configuration file")
def resolve(shipment_id, config):
    """Show how a shipment's carrier resolves and whether it is due."""
    from shipwatch.models import Shipment, utcnow
    from shipwatch.store import create_stores
    from shipwatch.tracking.policy import EligibilityPolicy
    from shipwatch.tracking.resolver import resolve as resolve_carrier

    poller_config = _load_config(config)

    async def load():
        shipments, events = create_stores(poller_config)
        try:
            return await shipments.get(shipment_id)
        finally:
            await shipments.close()
            await events.close()

    document = asyncio.run(load())
    if document is None:
        console.print(f"[red]✗ Shipment not found: {shipment_id}[/red]")
        raise SystemExit(1)

    shipment = Shipment.from_document(document)
    resolution = resolve_carrier(shipment)
    policy = EligibilityPolicy.from_config(poller_config)

    table = Table(title=f"Shipment {shipment.label}")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Status", shipment.status or "[dim]none[/dim]")
    table.add_row("Shipment Type", shipment.shipment_type or "[dim]none[/dim]")
    table.add_row("Carrier Name", shipment.carrier_fields.carrier_name or "[dim]none[/dim]")
    table.add_row("Resolved Carrier", resolution.carrier_name)
    table.add_row("Identifier", resolution.tracking_identifier or "[dim]none[/dim]")
    table.add_row("Identifier Kind", resolution.identifier_kind or "[dim]none[/dim]")
    table.add_row("Can Poll", "[green]yes[/green]" if resolution.can_poll else "[red]no[/red]")
    table.add_row("Reason", resolution.reason)
    table.add_row("Manual Override", "yes" if shipment.manual_override else "no")
    table.add_row("Last Poll", str(shipment.last_status_poll or "never"))
    table.add_row("Due Now", "yes" if policy.should_poll(shipment, utcnow()) else "no")
    console.print(table)


@cli.command()
@click.argument("shipment_id")
@click.option("--force", is_flag=True, help="Ignore the polling interval")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to configuration file")
def check(shipment_id, force, config):
    """Poll one shipment now."""
    from shipwatch.core import ShipwatchService
    from shipwatch.models import Shipment

    poller_config = _load_config(config)

    async def poll():
        service = ShipwatchService(poller_config)
        try:
            document = await service.shipments.get(shipment_id)
            if document is None:
                return None
            return await service.scheduler.poll_shipment(Shipment.from_document(document), force=force)
        finally:
            await service.shipments.close()
            await service.events.close()

    result = asyncio.run(poll())
    if result is None:
        console.print(f"[red]✗ Shipment not found: {shipment_id}[/red]")
        raise SystemExit(1)

    outcome, error = result
    if error:
        console.print(f"[red]✗ {outcome.value}: {error}[/red]")
    else:
        console.print(f"[green]✓ {outcome.value}[/green]")


@cli.command()
@click.argument("shipment_id")
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to configuration file")
def events(shipment_id, config):
    """Show a shipment's event timeline."""
    from shipwatch.store import create_stores

    poller_config = _load_config(config)

    async def load():
        shipments, event_store = create_stores(poller_config)
        try:
            return await event_store.list_events(shipment_id)
        finally:
            await shipments.close()
            await event_store.close()

    timeline = asyncio.run(load())
    if not timeline:
        console.print(f"[yellow]No events for {shipment_id}[/yellow]")
        return

    table = Table(title=f"Events for {shipment_id}")
    table.add_column("Time", style="cyan")
    table.add_column("Type")
    table.add_column("Source", style="dim")
    table.add_column("Title", style="green")
    table.add_column("Description")

    for event in timeline:
        table.add_row(
            event.timestamp.strftime("%Y-%m-%d %H:%M"),
            event.event_type,
            event.source,
            event.title,
            event.description,
        )
    console.print(table)


@cli.command()
@click.argument("config_path", type=click.Path())
def init(config_path):
    """Initialize configuration file."""
    config_path = Path(config_path)

    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    template = '''# Shipwatch Poller Configuration

POLLER_ID=shipwatch-poller-001

# Sweep cadence
POLL_INTERVAL_MINUTES=5
POLL_BATCH_SIZE=10
POLL_BATCH_PAUSE_SECONDS=2
POLL_SWEEP_BUDGET_SECONDS=540

# Polling intervals
POLL_FREIGHT_INTERVAL_HOURS=12
POLL_IN_TRANSIT_INTERVAL_MINUTES=10
POLL_DEFAULT_INTERVAL_HOURS=6
POLL_FLOOR_MINUTES=15

# Store backend: memory, json or http
STORE_BACKEND=json
DATA_DIR=data
BACKEND_API_URL=
BACKEND_API_KEY=

# eShipPlus
ESHIPPLUS_HOST=
ESHIPPLUS_STATUS_ENDPOINT=/api/shipment/status
ESHIPPLUS_USERNAME=
ESHIPPLUS_PASSWORD=
ESHIPPLUS_ACCESS_KEY=
ESHIPPLUS_ACCESS_CODE=

# Canpar
CANPAR_USERNAME=
CANPAR_PASSWORD=

# Polaris Transportation
POLARIS_HOST=
POLARIS_TRACKING_ENDPOINT=/api/trace
POLARIS_API_KEY=

# FedEx / UPS
FEDEX_CLIENT_ID=
FEDEX_CLIENT_SECRET=
UPS_CLIENT_ID=
UPS_CLIENT_SECRET=

# Logging
LOG_LEVEL=INFO
LOG_FILE=logs/shipwatch.log
'''

    config_path.write_text(template, encoding='utf-8')
    console.print(f"[green]✓ Configuration file created: {config_path}[/green]")
    console.print("\nEdit this file with your settings, then run:")
    console.print(f"  shipwatch run --config {config_path}")


@cli.command()
def logs():
    """View recent logs."""
    from shipwatch.config import PollerConfig
    config = PollerConfig.from_env()

    log_file = Path(config.log_file)

    if not log_file.exists():
        console.print(f"[yellow]Log file not found: {log_file}[/yellow]")
        return

    console.print(f"[bold]Recent logs from {log_file}:[/bold]\n")

    # Read last 50 lines
    with open(log_file, "r") as f:
        lines = f.readlines()
        recent = lines[-50:] if len(lines) > 50 else lines

        for line in recent:
            if "ERROR" in line:
                console.print(f"[red]{line.rstrip()}[/red]")
            elif "WARNING" in line:
                console.print(f"[yellow]{line.rstrip()}[/yellow]")
            elif "INFO" in line:
                console.print(f"[green]{line.rstrip()}[/green]")
            else:
                console.print(line.rstrip())


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
