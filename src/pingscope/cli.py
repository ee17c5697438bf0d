"""
Command-line entry point.
"""

import click

from pingscope import __version__
from pingscope.logging_config import configure_logging
from pingscope.probe.cli import probe_group
from pingscope.scan.cli import scan_group
from pingscope.services.cli import geo_group
from pingscope.trace.cli import trace_group


@click.group()
@click.version_option(__version__, prog_name="pingscope")
@click.option("--debug", is_flag=True, help="Verbose logging to stderr")
@click.option("--log-file", is_flag=True, help="Also log to ~/.pingscope/logs")
def main(debug: bool, log_file: bool):
    """PingScope - ping, sweep and trace network paths."""
    configure_logging(debug=debug, log_to_file=log_file)


main.add_command(probe_group)
main.add_command(scan_group)
main.add_command(trace_group)
main.add_command(geo_group)


if __name__ == "__main__":
    main()
