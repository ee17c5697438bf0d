"""
Services CLI commands for external API integrations.
"""

import click
from rich.console import Console
from rich.table import Table

from pingscope.services.geo import GeoClient, is_local_address


@click.group(name="geo")
def geo_group():
    """IP geolocation lookups."""
    pass


@geo_group.command()
@click.argument("ip")
def lookup(ip: str):
    """Get location and ISP for an IP address from ip-api.com.

    Examples:
        pingscope geo lookup 8.8.8.8
        pingscope geo lookup 192.168.1.1
    """
    console = Console()
    client = GeoClient()

    with console.status(f"[cyan]Looking up {ip}...[/cyan]"):
        result = client.lookup(ip)

    if is_local_address(ip):
        console.print(f"[yellow]{ip}:[/yellow] {result.label} (not looked up)")
        return

    if not result.ok:
        console.print(f"[red]Error:[/red] {result.error or result.label}")
        raise SystemExit(1)

    table = Table(title=f"Geo: {ip}", show_header=False, box=None)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("IP", ip)
    if result.country:
        table.add_row("Country", result.country)
    if result.city:
        table.add_row("City", result.city)
    if result.isp:
        table.add_row("ISP", result.isp)
    if result.coordinates:
        lat, lon = result.coordinates
        table.add_row("Location", f"{lat:.4f}, {lon:.4f}")

    console.print(table)
