"""Validate command - check declarations without touching state or providers."""

import sys
import click
from ...model.resolver import ReferenceResolver
from ...graph.dependency_graph import build_graph
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger
from ..utils import format_error, load_inputs

logger = get_logger("cli.validate")


@click.command()
@click.argument('declarations_file', type=click.Path(exists=False))
@click.option('--config', 'config_path', type=click.Path(), help='Extra config file merged over the defaults')
def validate(declarations_file, config_path):
    """
    Validate a declaration file.

    Resolves every reference and checks the dependency graph for cycles.
    """
    try:
        declarations, config = load_inputs(declarations_file, config_path)
        resolved = ReferenceResolver(config.type_registry()).resolve(declarations)
        graph = build_graph(resolved)
        click.echo(
            f"Valid: {len(graph.get_all_resources())} resources, "
            f"{graph.graph.number_of_edges()} dependencies."
        )
    except FileNotFoundError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Validation failed: {e}"), err=True)
        sys.exit(1)
