"""CLI entry point for portmon."""

import logging

import click
from textual.logging import TextualHandler

from portmon.app import PortmonApp
from portmon.config import Settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(verbose: bool, log_file: str | None) -> None:
    """
    Route log records away from the terminal the TUI owns.

    With a log file records go there, otherwise to Textual's devtools console.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    if log_file:
        logging.basicConfig(level=level, filename=log_file, format=LOG_FORMAT, datefmt="%H:%M:%S")
    else:
        logging.basicConfig(level=level, handlers=[TextualHandler()], format=LOG_FORMAT)


@click.command()
@click.version_option(package_name="portmon", prog_name="portmon")
@click.option(
    "--interval",
    "-i",
    type=click.FloatRange(min=0.1),
    default=3.0,
    show_default=True,
    envvar="PORTMON_INTERVAL",
    help="Seconds between process scans.",
)
@click.option("--all", "show_all", is_flag=True, help="Start with the ports-only filter off.")
@click.option("--system", is_flag=True, help="Start on the system processes tab.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, writable=True),
    help="Write log records to this file.",
)
def main(interval: float, show_all: bool, system: bool, verbose: bool, log_file: str | None) -> None:
    """portmon - list processes with their ports and kill them interactively."""
    configure_logging(verbose, log_file)
    settings = Settings(refresh_interval=interval, ports_only=not show_all, show_system=system)
    PortmonApp(settings=settings).run()


if __name__ == "__main__":
    main()
