"""
Probe CLI commands.
"""

import asyncio

import click
from rich.console import Console
from rich.table import Table

from pingscope.probe.core import ProbeResult, ProbeStatus, privileged_probe, probe, warm_up


async def _ping_with_warm_up(host: str, timeout: int, ttl: int | None) -> ProbeResult:
    await warm_up()
    if ttl is not None:
        # TTL expiry is only visible on raw sockets
        return await privileged_probe(host, timeout, ttl)
    return await probe(host, timeout)


@click.group(name="probe")
def probe_group():
    """Single ICMP echo probes."""
    pass


@probe_group.command(name="ping")
@click.argument("host")
@click.option("-t", "--timeout", default=1000, type=click.IntRange(min=1),
              help="Timeout in milliseconds")
@click.option("--ttl", type=click.IntRange(1, 255), default=None,
              help="Hop limit for the echo request")
def ping_cmd(host: str, timeout: int, ttl: int | None):
    """Send one echo request and show the reply timing.

    Examples:
        pingscope probe ping 8.8.8.8
        pingscope probe ping example.com --ttl 3
    """
    console = Console()

    with console.status(f"[cyan]Pinging {host}...[/cyan]"):
        result = asyncio.run(_ping_with_warm_up(host, timeout, ttl))

    if result.status == ProbeStatus.ERROR:
        console.print(f"[red]Error:[/red] {result.message}")
        raise SystemExit(1)

    if result.status == ProbeStatus.TIMED_OUT:
        console.print(f"[yellow]Ping failed:[/yellow] no reply within {timeout} ms")
        raise SystemExit(1)

    table = Table(title=f"Ping: {host}", show_header=False, box=None)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Reply from", result.address or "-")
    if result.status == ProbeStatus.TTL_EXCEEDED:
        table.add_row("Status", f"[yellow]TTL {ttl} expired in transit[/yellow]")
    else:
        table.add_row("Status", "[green]Success[/green]")
    table.add_row("Local time", f"{result.wall_clock_ms:.2f} ms")
    table.add_row("Round trip", f"{result.round_trip_ms} ms")

    console.print(table)
