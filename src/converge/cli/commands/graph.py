"""Graph command - print the dependency order of declared resources."""

import sys
import click
from ...graph.dependency_graph import build_graph
from ...model.resolver import ReferenceResolver
from ...utils.errors import ConvergeError
from ...utils.logging import get_logger
from ..utils import format_error, load_inputs

logger = get_logger("cli.graph")


@click.command()
@click.argument('declarations_file', type=click.Path(exists=False))
@click.option('--destroy', is_flag=True, help='Show destroy order instead of create order')
@click.option('--config', 'config_path', type=click.Path(), help='Extra config file merged over the defaults')
def graph(declarations_file, destroy, config_path):
    """Show resources in dependency order with what each one depends on."""
    try:
        declarations, config = load_inputs(declarations_file, config_path)
        resolved = ReferenceResolver(config.type_registry()).resolve(declarations)
        dependency_graph = build_graph(resolved)
        order = dependency_graph.destroy_order() if destroy else dependency_graph.topological_order()

        for position, address in enumerate(order, start=1):
            dependencies = sorted(dependency_graph.dependencies(address))
            line = f"{position:>3}. {address}"
            if dependencies:
                line += f"  <- {', '.join(dependencies)}"
            click.echo(line)
    except FileNotFoundError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except ConvergeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Graph failed: {e}"), err=True)
        sys.exit(1)
