"""
Scan CLI commands.
"""

import click
from rich.console import Console
from rich.table import Table

from pingscope.config import get_config
from pingscope.scan.core import ScanInputError, scan


@click.group(name="scan")
def scan_group():
    """Subnet reachability sweeps."""
    pass


@scan_group.command()
@click.argument("prefix")
@click.argument("start")
@click.argument("end")
@click.option("-t", "--timeout", type=click.IntRange(min=1), default=None,
              help="Timeout per address in milliseconds (default 500)")
@click.option("-c", "--concurrency", type=click.IntRange(min=1), default=None,
              help="Maximum probes in flight (default: all at once)")
@click.option("-a", "--all", "show_all", is_flag=True, help="List unreachable addresses too")
def sweep(prefix: str, start: str, end: str, timeout: int | None,
          concurrency: int | None, show_all: bool):
    """Ping every host from PREFIX.START to PREFIX.END.

    Examples:
        pingscope scan sweep 192.168.1 1 254
        pingscope scan sweep 10.0.0 1 64 -c 32 --all
    """
    console = Console()
    timeout = timeout or get_config().scan_timeout_ms

    try:
        with console.status(f"[cyan]Scanning {prefix}.{start} to {prefix}.{end}...[/cyan]"):
            report = scan(prefix, start, end, timeout_ms=timeout, concurrency=concurrency)
    except ScanInputError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    if report.total == 0:
        console.print(f"[yellow]Empty range {report.prefix}.{report.start}-{report.end}, nothing to scan[/yellow]")
        return

    table = Table(title=f"Scan: {report.prefix}.{report.start}-{report.end}", box=None)
    table.add_column("Address", style="cyan", width=16)
    table.add_column("Status", style="white", width=12)
    table.add_column("Time", style="dim", width=12)

    for outcome in report.outcomes:
        if outcome.reachable:
            elapsed = f"{outcome.result.wall_clock_ms:.2f} ms" if outcome.result else "-"
            table.add_row(outcome.address, "[green]UP[/green]", elapsed)
        elif show_all:
            table.add_row(outcome.address, "[red]DOWN[/red]", "-")

    if report.reachable_count or show_all:
        console.print(table)
    console.print(f"\n[cyan]Scan complete.[/cyan] [green]{report.reachable_count}[/green] "
                  f"of {report.total} hosts reachable")
