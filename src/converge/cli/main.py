"""Main CLI entry point for converge."""

import click
from .commands.graph import graph
from .commands.plan import plan
from .commands.show import show
from .commands.validate import validate
from .commands.version import version
from .. import __version__
from ..utils.logging import get_logger, set_verbosity

logger = get_logger("cli.main")


@click.group()
@click.version_option(version=__version__, prog_name="converge", message="%(prog)s version %(version)s")
@click.option('--verbose', '-v', is_flag=True, help='Show debug logs on stderr')
def cli(verbose):
    """converge - Declarative resource orchestration."""
    set_verbosity(verbose)


cli.add_command(validate)
cli.add_command(graph)
cli.add_command(plan)
cli.add_command(show)
cli.add_command(version)
