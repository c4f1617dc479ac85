"""Version command - show converge and core library versions."""

from importlib import metadata
import click
from ... import __version__

CORE_LIBRARIES = ("networkx", "pydantic", "PyYAML", "click", "tenacity")


@click.command()
def version():
    """Show converge version and the versions of the libraries it runs on."""
    click.echo(f"converge version {__version__}")
    for name in CORE_LIBRARIES:
        try:
            installed = metadata.version(name)
        except metadata.PackageNotFoundError:
            installed = "not installed"
        click.echo(f"  {name} {installed}")
