"""Show command - list resources recorded in a local state file."""

import sys
import click
from ...presentation.formatter import format_state
from ...state.local import LocalStateStore
from ...utils.errors import ConvergeError
from ..utils import format_error, resolve_file_path


@click.command()
@click.argument('state_file', type=click.Path(exists=False))
def show(state_file):
    """List stored resources with their identifiers and versions."""
    try:
        store = LocalStateStore(resolve_file_path(state_file))
        click.echo(format_state(store.list()))
    except FileNotFoundError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
