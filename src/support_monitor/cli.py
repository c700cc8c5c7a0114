"""
Command-line interface for Support Monitor.

Provides commands for sending, inspecting and scheduling support reports.
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from support_monitor import __version__
from support_monitor.config import Config
from support_monitor.core import Monitor
from support_monitor.errors import MonitorError
from support_monitor.models import Report

console = Console()


def setup_logging(level: str, log_file: str | None = None) -> None:
    """Configure logging with rich handler."""
    handlers: list[logging.Handler] = [RichHandler(console=console, rich_tracebacks=True)]
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
    )


def _fail(message: str) -> None:
    console.print(f"[red]✗ {message}[/]")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="support-monitor")
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option(
    "-V",
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.pass_context
def main(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """
    Support Monitor - Scheduled version reporting for support.

    Reports core and add-on versions of a site to a support endpoint.
    """
    ctx.ensure_object(dict)

    # Load configuration
    if config:
        ctx.obj["config"] = Config.load(config)
    else:
        ctx.obj["config"] = Config.load()

    # Set log level
    log_level = "DEBUG" if verbose else ctx.obj["config"].log_level
    setup_logging(log_level, ctx.obj["config"].log_file)
    ctx.obj["verbose"] = verbose
    ctx.obj["monitor"] = Monitor(ctx.obj["config"]).configure()


@main.command()
@click.pass_context
def update(ctx: click.Context) -> None:
    """
    Send a report now and wait for the server response.
    """
    monitor: Monitor = ctx.obj["monitor"]

    if not monitor.api_endpoint:
        _fail("No API endpoint configured. Set SUPPORT_MONITOR_API_ENDPOINT.")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"Posting to {monitor.api_endpoint}...", total=None)
        try:
            result = monitor.post(blocking=True)
        except MonitorError as e:
            progress.update(task, completed=True)
            _fail(str(e))
            return
        progress.update(task, completed=True)

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Status", str(result.status_code) if result.status_code else "-")
    table.add_row("Outcome", result.outcome.value)
    table.add_row("Duration", f"{result.duration_ms:.0f}ms")
    if result.body:
        table.add_row("Body", result.body)
    console.print(table)

    if result.error is not None:
        _fail(str(result.error))

    console.print("[green]✓ Report delivered[/]")


@main.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Show endpoint, secret, last run and next scheduled run."""
    monitor: Monitor = ctx.obj["monitor"]

    console.print()
    console.print(Panel.fit("[bold]Support Monitor Info[/]", border_style="blue"))

    last_run = monitor.get_last_run()
    next_run = monitor.next_scheduled()

    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="dim")
    table.add_column("Value")

    table.add_row("API Endpoint", monitor.api_endpoint or "[dim]Not configured[/]")
    table.add_row("API Secret", monitor.api_secret)
    table.add_row("Site", monitor.identity)
    if last_run:
        table.add_row("Last Run", f"{last_run.timestamp} ({last_run.outcome.value})")
    else:
        table.add_row("Last Run", "Never")
    table.add_row(
        "Next Scheduled",
        next_run.strftime("%Y-%m-%d %H:%M:%S") if next_run else "Not scheduled",
    )

    console.print(table)


def _display_report(report: Report) -> None:
    """Display a report as tables."""
    summary = Table(show_header=False, box=None)
    summary.add_column("Field", style="dim")
    summary.add_column("Value")
    summary.add_row("Identity", report.identity)
    summary.add_row("Timestamp", str(report.timestamp))
    summary.add_row("Signature", report.signature)
    summary.add_row("Core", report.core.current or "[dim]unknown[/]")
    summary.add_row("Recommended", report.core.recommended or "-")
    summary.add_row("Update", report.core.update.value)
    console.print(summary)
    console.print()

    table = Table(title="Add-ons", show_header=True)
    table.add_column("Slug", style="cyan")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Current", justify="right")
    table.add_column("Recommended", justify="right")
    table.add_column("Update", justify="center")
    table.add_column("Active", justify="center")

    for addon in report.addons:
        table.add_row(
            addon.slug,
            addon.display_name,
            addon.kind.value,
            addon.current_version or "-",
            addon.recommended_version or "-",
            addon.update.value,
            "[green]✓[/]" if addon.active else "[dim]✗[/]",
        )

    console.print(table)


@main.command()
@click.option(
    "--format",
    "-f",
    type=click.Choice(["yaml", "json", "table"]),
    default="yaml",
    help="Output format",
)
@click.option(
    "--pretty/--no-pretty",
    default=True,
    help="Pretty print JSON output",
)
@click.pass_context
def report(ctx: click.Context, format: str, pretty: bool) -> None:
    """Print the compiled report without sending it."""
    monitor: Monitor = ctx.obj["monitor"]

    try:
        compiled = monitor.compile()
    except MonitorError as e:
        _fail(str(e))
        return

    if format == "json":
        click.echo(compiled.to_json(indent=2 if pretty else None))
    elif format == "table":
        _display_report(compiled)
    else:
        click.echo(yaml.safe_dump(compiled.to_dict(), default_flow_style=False, sort_keys=False))


@main.command("schedule")
@click.pass_context
def schedule_cmd(ctx: click.Context) -> None:
    """Schedule the periodic report."""
    monitor: Monitor = ctx.obj["monitor"]
    try:
        monitor.schedule()
    except MonitorError as e:
        _fail(str(e))
    console.print("[green]✓ Event successfully scheduled[/]")


@main.command("unschedule")
@click.pass_context
def unschedule_cmd(ctx: click.Context) -> None:
    """Remove the periodic report."""
    monitor: Monitor = ctx.obj["monitor"]
    try:
        monitor.unschedule()
    except MonitorError as e:
        _fail(str(e))
    console.print("[green]✓ Event successfully unscheduled[/]")


@main.command()
@click.option(
    "--poll",
    type=float,
    default=60,
    show_default=True,
    help="Seconds between schedule checks",
)
@click.pass_context
def daemon(ctx: click.Context, poll: float) -> None:
    """
    Run the agent in the foreground.

    Restores the periodic schedule, sends a catch-up report if the last one
    is missing or stale, then runs scheduled reports until interrupted.
    """
    monitor: Monitor = ctx.obj["monitor"]
    stop_event = threading.Event()

    def _stop(signum, frame):
        logging.getLogger(__name__).info("Stopping support monitor")
        stop_event.set()

    signal.signal(signal.SIGTERM, _stop)
    signal.signal(signal.SIGINT, _stop)

    monitor.serve(stop_event, poll_seconds=poll)


@main.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def uninstall(ctx: click.Context, yes: bool) -> None:
    """Unschedule reports and delete the recorded last run."""
    monitor: Monitor = ctx.obj["monitor"]

    if not yes and not click.confirm("Remove the schedule and all recorded state?"):
        console.print("[yellow]Cancelled[/]")
        return

    try:
        monitor.uninstall()
    except MonitorError as e:
        _fail(str(e))
    console.print("[green]✓ Support monitor state removed[/]")


@main.command("version", short_help="Display version information")
def version() -> None:
    """Display version information for Support Monitor."""
    console.print()
    console.print(
        Panel.fit(
            f"[bold blue]Support Monitor[/]\nVersion: [cyan]{__version__}[/]",
            border_style="blue",
            title="Version Information",
        )
    )
    console.print()

    table = Table(show_header=False, box=None)
    table.add_column("Component", style="dim", width=20)
    table.add_column("Version", style="cyan")

    table.add_row("Support Monitor", __version__)
    table.add_row("Python", sys.version.split()[0])

    console.print(table)
    console.print()


@main.command()
@click.argument("output_path", type=click.Path(path_type=Path))
def init_config(output_path: Path) -> None:
    """
    Generate a sample configuration file.

    Creates a YAML configuration file with all available options
    and helpful comments.
    """
    sample_config = """# Support Monitor Configuration

api:
  # URL reports are posted to
  endpoint: https://support.example.com/api/report

  # Shared secret; defaults to a SHA-256 hash of this machine's host name
  secret: null  # Set via SUPPORT_MONITOR_API_SECRET env var for security

  # Accept loopback/internal endpoints (testing only)
  allow_loopback: false

site:
  # Public URL identifying this site; defaults to the manifest's site_url
  url: null

# YAML manifest describing the site's core and add-ons
manifest_path: /etc/support-monitor/site.yaml

# Command that refreshes the site's update check before each report
refresh_command: null

# Directory holding the last run record and schedule
state_dir: /var/lib/support-monitor

schedule:
  # Hours between periodic reports
  interval_hours: 12

# Send a catch-up report at startup if the last one is older than this
catch_up_hours: 12

log:
  # Log level: DEBUG, INFO, WARNING, ERROR
  level: INFO

  # Log file path (null = stderr only)
  file: null
"""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(sample_config)
    console.print(f"[green]✓ Configuration file created: {output_path}[/]")
    console.print()
    console.print("Next steps:")
    console.print("  1. Edit the configuration file with your endpoint and manifest path")
    console.print("  2. Check the report: [cyan]support-monitor report[/]")
    console.print("  3. Enable periodic reports: [cyan]support-monitor schedule[/]")


if __name__ == "__main__":
    main()
