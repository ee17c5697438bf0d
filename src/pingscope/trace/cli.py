"""
Trace CLI commands.
"""

import asyncio

import click
from rich.console import Console
from rich.live import Live
from rich.table import Table

from pingscope.config import get_config
from pingscope.mapview.core import LeafletMap
from pingscope.probe.core import ProbeStatus
from pingscope.services.geo import GeoClient
from pingscope.trace.core import HopRecord, PathTracer, TraceOutcome, TraceResult


def _hop_table(target: str, hops: list[HopRecord], show_geo: bool) -> Table:
    table = Table(title=f"Traceroute: {target}", box=None)
    table.add_column("Hop", style="cyan", width=4)
    table.add_column("Address", style="white", width=40)
    table.add_column("Local", style="white", width=12)
    table.add_column("Network", style="dim", width=10)
    if show_geo:
        table.add_column("Location", style="yellow")

    for hop in hops:
        if hop.status == ProbeStatus.TIMED_OUT:
            row = [str(hop.hop), "*", hop.local_time, "[dim]Timeout[/dim]"]
        elif hop.status == ProbeStatus.ERROR:
            row = [str(hop.hop), f"[red]{hop.address}[/red]", hop.local_time,
                   f"[red]{hop.network_time}[/red]"]
        else:
            address = f"[green]{hop.address}[/green]" if hop.is_destination else hop.address
            row = [str(hop.hop), address, hop.local_time, hop.network_time]
        if show_geo:
            row.append(hop.geo)
        table.add_row(*row)

    return table


async def _run_trace(
    console: Console,
    tracer: PathTracer,
    target: str,
    show_geo: bool,
) -> TraceResult:
    result = TraceResult(target=target)
    with Live(_hop_table(target, result.hops, show_geo), console=console, refresh_per_second=8) as live:
        async for hop in tracer.hops(target):
            result.hops.append(hop)
            live.update(_hop_table(target, result.hops, show_geo))
    result.outcome = tracer.outcome
    return result


async def _trace_with_geo(console, target, max_hops, timeout, map_renderer):
    async with GeoClient() as geo:
        tracer = PathTracer(geo=geo, map_renderer=map_renderer,
                            max_hops=max_hops, timeout_ms=timeout)
        return await _run_trace(console, tracer, target, True)


@click.group(name="trace")
def trace_group():
    """TTL-stepped path tracing."""
    pass


@trace_group.command()
@click.argument("target")
@click.option("-m", "--max-hops", type=click.IntRange(1, 255), default=None,
              help="Maximum number of hops (default 30)")
@click.option("-t", "--timeout", type=click.IntRange(min=1), default=None,
              help="Timeout per hop in milliseconds (default 1000)")
@click.option("--no-geo", is_flag=True, help="Don't look up hop locations")
@click.option("--map", "map_file", type=click.Path(dir_okay=False), default=None,
              help="Write a Leaflet HTML map of the located hops")
def route(target: str, max_hops: int | None, timeout: int | None, no_geo: bool,
          map_file: str | None):
    """Trace the route to TARGET hop by hop.

    Examples:
        pingscope trace route 8.8.8.8
        pingscope trace route example.com -m 20 --map route.html
    """
    console = Console()
    config = get_config()
    max_hops = max_hops or config.max_hops
    timeout = timeout or config.trace_timeout_ms

    # Settings from the environment bypass click's range checks
    if not 1 <= max_hops <= 255:
        console.print(f"[red]Error:[/red] max hops must be between 1 and 255, got {max_hops}")
        raise SystemExit(1)
    if timeout <= 0:
        console.print(f"[red]Error:[/red] timeout must be positive, got {timeout}")
        raise SystemExit(1)

    map_renderer = LeafletMap(title=f"Traceroute: {target}") if map_file else None

    console.print(f"[cyan]Traceroute to {target}, {max_hops} hops max[/cyan]")

    if no_geo:
        tracer = PathTracer(map_renderer=map_renderer, max_hops=max_hops, timeout_ms=timeout)
        result = asyncio.run(_run_trace(console, tracer, target, False))
    else:
        result = asyncio.run(_trace_with_geo(console, target, max_hops, timeout, map_renderer))

    if result.outcome == TraceOutcome.REACHED:
        console.print("[green]Destination reached.[/green]")
    elif result.outcome == TraceOutcome.FAILED:
        console.print(f"[red]Trace stopped:[/red] {result.hops[-1].geo}")
    else:
        console.print(f"[yellow]Destination not reached within {max_hops} hops[/yellow]")

    if map_renderer is not None:
        path = map_renderer.save(map_file)
        console.print(f"[dim]Map saved to {path}[/dim]")

    if result.outcome == TraceOutcome.FAILED:
        raise SystemExit(1)
